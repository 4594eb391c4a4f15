"""Data models and enumerations for LeadFlow.

Enums subclass str so they serialize as their plain values.
Lead, Task and Activity are mutable records owned by the persistence
layer. CadenceRule and CadencePolicy are frozen: policies are immutable
inputs to the cadence engine.

This module defines:
    - Enumerations for all categorical fields
    - Dataclasses for leads, tasks, activities, templates and policies
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

# =============================================================================
# ENUMERATIONS
# =============================================================================


class LeadStage(str, Enum):
    """Where a lead sits in the sales pipeline.

    Values, in pipeline order:
        NEW: Just came in, nobody has reached out
        CONTACTED: First touch made
        QUALIFIED: Real trip, real budget
        PROPOSAL_SENT: Options sent, waiting on a decision
        BOOKED: Trip booked - terminal
        LOST: Went elsewhere or went quiet for good - terminal
    """

    NEW = "New"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    PROPOSAL_SENT = "ProposalSent"
    BOOKED = "Booked"
    LOST = "Lost"

    @property
    def is_terminal(self) -> bool:
        """True for stages that end all automated follow-up."""
        return self in TERMINAL_STAGES

    @property
    def position(self) -> int:
        """Zero-based position in the pipeline."""
        return PIPELINE_ORDER.index(self)


PIPELINE_ORDER: tuple[LeadStage, ...] = tuple(LeadStage)

TERMINAL_STAGES: frozenset[LeadStage] = frozenset({LeadStage.BOOKED, LeadStage.LOST})


class Channel(str, Enum):
    """Delivery channel for a follow-up touch or template."""

    EMAIL = "email"
    SMS = "sms"
    CALL = "call"


class TaskStatus(str, Enum):
    """Status of a follow-up task."""

    TODO = "todo"
    DONE = "done"


class ActivityType(str, Enum):
    """Type of activity logged against a lead."""

    NOTE = "note"
    CALL = "call"
    EMAIL = "email"
    SMS = "sms"
    STATUS_CHANGE = "status_change"
    TASK_CREATED = "task_created"


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class Lead:
    """Sales contact record.

    Attributes:
        id: Lead identifier
        full_name: Display name
        stage: Pipeline stage
        email: Email address
        phone: Phone number
        source: Where the lead came from
        destination: Destination or service the lead asked about
        budget_range: Stated budget
        timeline: Stated travel timeline
        notes: Free-form notes
        created_at: Record creation time
        updated_at: Last update time
    """

    id: str
    full_name: str = ""
    stage: LeadStage = LeadStage.NEW
    email: Optional[str] = None
    phone: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    budget_range: Optional[str] = None
    timeline: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def first_name(self) -> str:
        """Return first word of the display name."""
        parts = self.full_name.split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        """Return everything after the first word of the display name."""
        parts = self.full_name.split()
        return " ".join(parts[1:])


@dataclass
class Task:
    """Schedulable follow-up action for one lead.

    Only the calendar day of due_at matters when checking for
    duplicates; the time of day is kept for display.

    Attributes:
        id: Task identifier
        lead_id: Owning lead
        title: What to do
        due_at: When it is due
        status: todo or done
        channel: How to do it (optional)
        template_id: Message template to use (weak reference, optional)
    """

    id: str
    lead_id: str
    title: str
    due_at: datetime
    status: TaskStatus = TaskStatus.TODO
    channel: Optional[Channel] = None
    template_id: Optional[str] = None


@dataclass
class Activity:
    """Append-only log entry for a lead.

    Attributes:
        id: Activity identifier
        lead_id: Lead this happened to
        activity_type: Kind of activity
        body: Human-readable description
        created_at: When it happened
    """

    id: str
    lead_id: str
    activity_type: ActivityType
    body: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Template:
    """Reusable message template.

    Body and subject are Jinja2 source rendered against the lead.

    Attributes:
        id: Template identifier (what CadenceRule.template_id points at)
        channel: Channel the template is written for
        name: Display name
        body: Jinja2 body source
        subject: Jinja2 subject source (email only)
        tags: Free-form labels
        is_system_template: Shipped with LeadFlow rather than user-authored
    """

    id: str
    channel: Channel
    name: str
    body: str
    subject: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    is_system_template: bool = False


@dataclass(frozen=True)
class CadenceRule:
    """One touch point in a cadence policy.

    Attributes:
        day_offset: Days after the reference date (>= 0)
        channel: Delivery channel
        title: Title of the task to create (non-blank)
        template_id: Template to use (weak reference, never resolved by the engine)
    """

    day_offset: int
    channel: Channel
    title: str
    template_id: Optional[str] = None


@dataclass(frozen=True)
class CadencePolicy:
    """Named, ordered list of cadence rules.

    Rule order is significant and is not required to follow day_offset.

    Attributes:
        id: Policy identifier
        name: Display name
        rules: Ordered rules (may be empty)
        is_default: Whether this is the workspace default
    """

    id: str
    name: str
    rules: tuple[CadenceRule, ...] = ()
    is_default: bool = False

    def __post_init__(self) -> None:
        # Accept any iterable of rules but store a tuple
        object.__setattr__(self, "rules", tuple(self.rules))
