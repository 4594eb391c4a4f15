"""Follow-up cadence engine.

Turns a cadence policy into concrete follow-up tasks for one lead:
    1. Terminal leads (Booked, Lost) stop immediately - never nag a closed lead
    2. Each rule becomes a task due day_offset days after the reference date
    3. Rules already covered by an existing task are skipped as duplicates

The engine is a pure function. It never persists anything and keeps no
state between calls, so re-running it after a partial save is always safe:
tasks that made it to storage come back as duplicates.

A task is a duplicate of a rule when it belongs to the same lead and has
the same title, the same channel, and a due date on the same calendar
day. Time of day is ignored.

Usage:
    from leadflow.engine.cadence import generate_follow_up_tasks, explain_cadence

    result = generate_follow_up_tasks(lead, DEFAULT_CADENCE, existing_tasks)
    if result.stopped:
        print(result.reason)
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional, Union

from leadflow.core.logging import get_logger, lead_context
from leadflow.db.models import CadencePolicy, CadenceRule, Channel, Lead, Task, TaskStatus

logger = get_logger(__name__)

DateLike = Union[date, datetime]


@dataclass
class CadenceResult:
    """Outcome of one engine run.

    Attributes:
        tasks_to_create: New task proposals, in policy rule order
        duplicate_count: Rules skipped because a matching task exists
        stopped: True when the lead's stage forbids follow-up
        reason: Why generation stopped (only set when stopped)
    """

    tasks_to_create: list[Task] = field(default_factory=list)
    duplicate_count: int = 0
    stopped: bool = False
    reason: Optional[str] = None


# =============================================================================
# DATE HELPERS
# =============================================================================


def to_datetime(value: DateLike) -> datetime:
    """Promote a date to midnight of that day; datetimes pass through."""
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def add_days(start: datetime, days: int) -> datetime:
    """Add calendar days, keeping the wall-clock time and tzinfo.

    Args:
        start: Starting datetime
        days: Number of calendar days to add

    Returns:
        Same wall-clock time, `days` days later

    Raises:
        OverflowError: If the result is outside the datetime range
    """
    return start + timedelta(days=days)


def same_calendar_day(a: datetime, b: datetime) -> bool:
    """Check whether two datetimes fall on the same calendar day.

    When both are timezone-aware, `a` is viewed in `b`'s timezone first.
    Otherwise the wall-clock dates are compared as given.
    """
    if a.tzinfo is not None and b.tzinfo is not None:
        a = a.astimezone(b.tzinfo)
    return a.date() == b.date()


# =============================================================================
# ENGINE
# =============================================================================


def _new_task_id() -> str:
    return uuid.uuid4().hex


def _is_duplicate(
    rule: CadenceRule,
    due: datetime,
    lead_id: str,
    existing_tasks: list[Task],
) -> bool:
    """Check whether an existing task already covers this rule."""
    for task in existing_tasks:
        if task.lead_id != lead_id:
            continue
        if task.title != rule.title:
            continue
        if task.channel != rule.channel:
            continue
        if not same_calendar_day(task.due_at, due):
            continue
        return True
    return False


def generate_follow_up_tasks(
    lead: Lead,
    cadence_policy: CadencePolicy,
    existing_tasks: Iterable[Task],
    reference_date: Optional[DateLike] = None,
    id_factory: Optional[Callable[[], str]] = None,
) -> CadenceResult:
    """Compute the follow-up tasks a lead still needs under a policy.

    Existing tasks may span several leads; only the ones belonging to
    `lead` are considered.

    Args:
        lead: Lead snapshot
        cadence_policy: Policy whose rules are evaluated in order
        existing_tasks: Tasks that already exist
        reference_date: Day offsets are measured from here. Defaults to now.
        id_factory: Produces ids for new tasks. Defaults to random UUID hex.

    Returns:
        CadenceResult with the proposals, duplicate count and stop decision
    """
    if lead.stage.is_terminal:
        logger.debug(
            "Cadence stopped for terminal lead",
            extra={"context": lead_context(lead)},
        )
        return CadenceResult(
            stopped=True,
            reason=f"Lead is already {lead.stage.value}. No follow-up tasks needed.",
        )

    base = to_datetime(reference_date) if reference_date is not None else datetime.now()
    make_id = id_factory or _new_task_id
    tasks = list(existing_tasks)

    result = CadenceResult()
    for rule in cadence_policy.rules:
        due = add_days(base, rule.day_offset)

        if _is_duplicate(rule, due, lead.id, tasks):
            result.duplicate_count += 1
            continue

        result.tasks_to_create.append(
            Task(
                id=make_id(),
                lead_id=lead.id,
                title=rule.title,
                due_at=due,
                status=TaskStatus.TODO,
                channel=rule.channel,
                template_id=rule.template_id,
            )
        )

    logger.debug(
        "Cadence evaluated",
        extra={
            "context": lead_context(
                lead,
                policy_id=cadence_policy.id,
                proposed=len(result.tasks_to_create),
                duplicates=result.duplicate_count,
            )
        },
    )
    return result


# =============================================================================
# EXPLANATION
# =============================================================================

_CHANNEL_PHRASES = {
    Channel.EMAIL: "emails",
    Channel.CALL: "calls",
    Channel.SMS: "SMS",
}


def _join_phrases(phrases: list[str]) -> str:
    if len(phrases) <= 2:
        return " and ".join(phrases)
    return ", ".join(phrases[:-1]) + f", and {phrases[-1]}"


def explain_cadence(cadence_policy: CadencePolicy) -> str:
    """Get a one-sentence, human-readable summary of a policy.

    Touch count is the number of rules; duration is the largest day
    offset (0 for an empty policy).
    """
    touch_count = len(cadence_policy.rules)
    duration = max((rule.day_offset for rule in cadence_policy.rules), default=0)
    day_word = "day" if duration == 1 else "days"

    channels: list[str] = []
    for rule in cadence_policy.rules:
        phrase = _CHANNEL_PHRASES[rule.channel]
        if phrase not in channels:
            channels.append(phrase)

    sentence = f"This {touch_count}-touch cadence spreads follow-ups over {duration} {day_word}"
    if channels:
        sentence += f", combining {_join_phrases(channels)}"
    return sentence + "."
