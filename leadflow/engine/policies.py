"""Cadence policy definitions, validation and loading.

Policies are validated here, where they enter the system, so the cadence
engine can trust every rule it is handed.

Rule checks:
    - title is non-blank
    - day_offset is an integer >= 0
    - channel is one of email, sms, call

Usage:
    from leadflow.engine.policies import DEFAULT_CADENCE, load_policy

    policy = load_policy(Path("policies/summer.json"))
"""

import json
from pathlib import Path
from typing import Any, Optional

from leadflow.core.exceptions import ValidationError
from leadflow.core.logging import get_logger
from leadflow.db.models import CadencePolicy, CadenceRule, Channel

logger = get_logger(__name__)


DEFAULT_CADENCE = CadencePolicy(
    id="default-5-touch",
    name="Default 5-Touch Follow-up",
    is_default=True,
    rules=(
        CadenceRule(0, Channel.EMAIL, "Send welcome email", "email-welcome"),
        CadenceRule(1, Channel.SMS, "Quick SMS check-in", "sms-quick-checkin"),
        CadenceRule(3, Channel.CALL, "Discovery call", "call-discovery"),
        CadenceRule(5, Channel.EMAIL, "Send options recap email", "email-options-recap"),
        CadenceRule(8, Channel.SMS, "Final SMS touch", "sms-final-touch"),
    ),
)


def validate_rule(rule: CadenceRule, position: int = 1) -> list[str]:
    """Validate one cadence rule.

    Args:
        rule: Rule to check
        position: 1-based position, used in messages

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    if not isinstance(rule.title, str) or not rule.title.strip():
        issues.append(f"Rule {position}: title is required")

    # bool is an int subclass but never a sensible offset
    if isinstance(rule.day_offset, bool) or not isinstance(rule.day_offset, int):
        issues.append(f"Rule {position}: day offset must be a whole number of days")
    elif rule.day_offset < 0:
        issues.append(f"Rule {position}: day offset must not be negative ({rule.day_offset})")

    if not isinstance(rule.channel, Channel):
        issues.append(f"Rule {position}: unknown channel {rule.channel!r}")

    if rule.template_id is not None and not isinstance(rule.template_id, str):
        issues.append(f"Rule {position}: template id must be a string")

    return issues


def validate_policy(policy: CadencePolicy) -> list[str]:
    """Validate a cadence policy.

    An empty rule list is valid; it simply produces no tasks.

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    if not isinstance(policy.name, str) or not policy.name.strip():
        issues.append("Policy name is required")

    for position, rule in enumerate(policy.rules, start=1):
        issues.extend(validate_rule(rule, position))

    return issues


def _parse_channel(value: Any, position: int) -> Channel:
    try:
        return Channel(value)
    except ValueError:
        raise ValidationError(f"Rule {position}: unknown channel {value!r}") from None


def _parse_rule(data: Any, position: int) -> CadenceRule:
    if not isinstance(data, dict):
        raise ValidationError(f"Rule {position}: expected an object, got {type(data).__name__}")

    # Accept both snake_case and the camelCase used by exported policies
    day_offset = data.get("day_offset", data.get("dayOffset"))
    template_id = data.get("template_id", data.get("templateId"))

    return CadenceRule(
        day_offset=day_offset,
        channel=_parse_channel(data.get("channel"), position),
        title=data.get("title", ""),
        template_id=template_id,
    )


def policy_from_dict(data: dict[str, Any]) -> CadencePolicy:
    """Build and validate a policy from a plain dict.

    Args:
        data: Mapping with id, name, rules and optional is_default

    Returns:
        Validated CadencePolicy

    Raises:
        ValidationError: If the data does not describe a valid policy
    """
    if not isinstance(data, dict):
        raise ValidationError("Cadence policy must be an object")

    raw_rules = data.get("rules", [])
    if not isinstance(raw_rules, list):
        raise ValidationError("Cadence policy rules must be a list")

    is_default = data.get("is_default", data.get("isDefault", False))
    if not isinstance(is_default, bool):
        raise ValidationError(f"Cadence policy is_default must be true or false, got {is_default!r}")

    policy = CadencePolicy(
        id=str(data.get("id") or ""),
        name=data.get("name") or "",
        rules=[_parse_rule(raw, position) for position, raw in enumerate(raw_rules, start=1)],
        is_default=is_default,
    )

    issues = validate_policy(policy)
    if issues:
        raise ValidationError("Invalid cadence policy: " + "; ".join(issues))

    return policy


def policy_to_dict(policy: CadencePolicy) -> dict[str, Any]:
    """Serialize a policy to a JSON-ready dict."""
    return {
        "id": policy.id,
        "name": policy.name,
        "is_default": policy.is_default,
        "rules": [
            {
                "day_offset": rule.day_offset,
                "channel": rule.channel.value,
                "title": rule.title,
                "template_id": rule.template_id,
            }
            for rule in policy.rules
        ],
    }


def load_policy(path: Path) -> CadencePolicy:
    """Load a cadence policy from a JSON file.

    Raises:
        ValidationError: If the file is not valid JSON or not a valid policy
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ValidationError(f"Cannot read policy file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Policy file {path} is not valid JSON: {e}") from e

    policy = policy_from_dict(data)
    logger.info(
        f"Loaded cadence policy: {policy.name}",
        extra={"context": {"policy_id": policy.id, "rules": len(policy.rules)}},
    )
    return policy


def get_default_policy(policy_path: Optional[Path] = None) -> CadencePolicy:
    """Return the configured default policy, or the built-in one."""
    if policy_path is None:
        return DEFAULT_CADENCE
    return load_policy(policy_path)
