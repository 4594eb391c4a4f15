"""Database package - Records shared by every layer.

Storage itself lives outside LeadFlow; callers plug a task store into
the follow-up planner.

Modules:
    - models: Enumerations and record dataclasses
"""

from leadflow.db.models import (
    PIPELINE_ORDER,
    TERMINAL_STAGES,
    Activity,
    ActivityType,
    CadencePolicy,
    CadenceRule,
    Channel,
    Lead,
    LeadStage,
    Task,
    TaskStatus,
    Template,
)

__all__ = [
    "PIPELINE_ORDER",
    "TERMINAL_STAGES",
    "Activity",
    "ActivityType",
    "CadencePolicy",
    "CadenceRule",
    "Channel",
    "Lead",
    "LeadStage",
    "Task",
    "TaskStatus",
    "Template",
]
