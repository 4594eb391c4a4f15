"""LeadFlow command line.

Usage:
    python -m leadflow explain [--policy FILE]
    python -m leadflow plan --lead-id ID --name NAME [--stage STAGE]
                            [--date YYYY-MM-DD] [--policy FILE] [--existing FILE]
    python -m leadflow render TEMPLATE_ID [--name NAME] [--destination DEST] [--list]
    python -m leadflow --version

`plan` is a preview: it prints what the cadence engine would create and
saves nothing.
"""

import argparse
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from leadflow import __version__
from leadflow.core.config import get_config, validate_config
from leadflow.core.exceptions import ConfigurationError, LeadFlowError, ValidationError
from leadflow.core.logging import get_logger, setup_logging
from leadflow.db.models import CadencePolicy, Channel, Lead, LeadStage, Task, TaskStatus
from leadflow.engine.cadence import explain_cadence, generate_follow_up_tasks
from leadflow.engine.followup import summarize
from leadflow.engine.policies import get_default_policy, load_policy
from leadflow.engine.templates import get_library

EXIT_OK = 0
EXIT_INVALID = 2


def task_from_dict(data: dict[str, Any]) -> Task:
    """Build a Task from exported JSON (snake_case or camelCase keys).

    Raises:
        ValidationError: If a required field is missing or malformed
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Task record must be an object, got {type(data).__name__}")

    try:
        channel = data.get("channel")
        return Task(
            id=str(data["id"]),
            lead_id=str(data.get("lead_id") or data["leadId"]),
            title=data["title"],
            due_at=datetime.fromisoformat(data.get("due_at") or data["dueAt"]),
            status=TaskStatus(data.get("status", TaskStatus.TODO.value)),
            channel=Channel(channel) if channel else None,
            template_id=data.get("template_id", data.get("templateId")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid task record {data!r}: {e}") from e


def load_tasks(path: Path) -> list[Task]:
    """Load existing tasks from a JSON array file."""
    try:
        records = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ValidationError(f"Cannot read task file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Task file {path} is not valid JSON: {e}") from e
    if not isinstance(records, list):
        raise ValidationError(f"Task file {path} must contain a JSON array")
    return [task_from_dict(record) for record in records]


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leadflow",
        description="LeadFlow - follow-up cadence planning for travel advisors",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    explain = subparsers.add_parser("explain", help="Describe a cadence policy")
    explain.add_argument("--policy", type=Path, help="Policy JSON file (default: configured)")

    plan = subparsers.add_parser("plan", help="Preview follow-up tasks for a lead")
    plan.add_argument("--lead-id", required=True, help="Lead identifier")
    plan.add_argument("--name", default="", help="Lead display name")
    plan.add_argument(
        "--stage",
        choices=[stage.value for stage in LeadStage],
        default=LeadStage.NEW.value,
        help="Lead stage (default: New)",
    )
    plan.add_argument("--date", type=_parse_date, help="Reference date (default: now)")
    plan.add_argument("--policy", type=Path, help="Policy JSON file (default: configured)")
    plan.add_argument("--existing", type=Path, help="JSON array of existing tasks")

    render = subparsers.add_parser("render", help="Render a message template for a lead")
    render.add_argument("template_id", nargs="?", help="Template to render, e.g. email-welcome")
    render.add_argument("--name", default="", help="Lead display name")
    render.add_argument("--destination", help="Destination or service the lead asked about")
    render.add_argument("--timeline", help="Travel timeline")
    render.add_argument("--budget", help="Budget range")
    render.add_argument("--list", action="store_true", help="List available templates instead")

    return parser


def _resolve_policy(policy_path: Optional[Path], configured: Optional[Path]) -> CadencePolicy:
    return load_policy(policy_path) if policy_path else get_default_policy(configured)


# Settings each command reads; a CRITICAL issue only blocks commands that use it
_COMMAND_SETTINGS = {
    "explain": ("POLICY_PATH",),
    "plan": ("POLICY_PATH",),
    "render": ("TEMPLATE_PATH",),
}


def _check_critical(command: str, issues: list[str], policy_given: bool) -> None:
    """Raise ConfigurationError if a CRITICAL issue affects this command."""
    needed = set(_COMMAND_SETTINGS.get(command, ()))
    if policy_given:
        needed.discard("POLICY_PATH")
    for issue in issues:
        if issue.startswith("CRITICAL:") and any(f"LEADFLOW_{name}" in issue for name in needed):
            raise ConfigurationError(f"Configuration has critical issues: {issue}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 = success, 2 = invalid input or configuration)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"LeadFlow v{__version__}")
        return EXIT_OK

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    config = get_config()
    setup_logging(
        log_dir=config.log_path,
        console_level=logging.DEBUG if (args.debug or config.debug) else logging.WARNING,
    )
    logger = get_logger("cli")

    issues = validate_config(config)
    for issue in issues:
        if issue.startswith("CRITICAL:"):
            logger.error(f"Configuration: {issue}")
        else:
            logger.warning(f"Configuration issue: {issue}")

    policy_arg = getattr(args, "policy", None)

    try:
        _check_critical(args.command, issues, policy_arg is not None)

        if args.command == "render":
            return _render(args, config.template_path, config.sender_name)

        policy = _resolve_policy(policy_arg, config.policy_path)

        if args.command == "explain":
            print(f"{policy.name}: {explain_cadence(policy)}")
            return EXIT_OK

        lead = Lead(id=args.lead_id, full_name=args.name, stage=LeadStage(args.stage))
        existing = load_tasks(args.existing) if args.existing else []
        result = generate_follow_up_tasks(lead, policy, existing, reference_date=args.date)
    except LeadFlowError as e:
        logger.error(str(e))
        print(f"Error: {e}")
        return EXIT_INVALID

    for task in result.tasks_to_create:
        channel = task.channel.value if task.channel else "-"
        print(f"{task.due_at.date().isoformat()}  {channel:5s}  {task.title}")
    print(summarize(result))
    return EXIT_OK


def _render(
    args: argparse.Namespace,
    template_dir: Optional[Path],
    sender_name: Optional[str],
) -> int:
    library = get_library(template_dir)

    if args.list or not args.template_id:
        for template in library.list_templates():
            print(f"{template.id:28s} {template.channel.value:5s}  {template.name}")
        return EXIT_OK

    lead = Lead(
        id="preview",
        full_name=args.name,
        destination=args.destination,
        timeline=args.timeline,
        budget_range=args.budget,
    )
    message = library.render(args.template_id, lead, sender_name=sender_name)
    if message.subject:
        print(f"Subject: {message.subject}\n")
    print(message.body)
    return EXIT_OK
