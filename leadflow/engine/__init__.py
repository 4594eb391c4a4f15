"""Engine package - Business logic layer.

Modules:
    - cadence: Follow-up cadence engine and explanation
    - policies: Default policy, policy validation and loading
    - templates: Jinja2 message templates
    - followup: Planner that runs the engine against a task store
"""

from leadflow.engine.cadence import (
    CadenceResult,
    add_days,
    explain_cadence,
    generate_follow_up_tasks,
    same_calendar_day,
)
from leadflow.engine.followup import FollowUpPlanner, FollowUpReport, TaskStore
from leadflow.engine.policies import (
    DEFAULT_CADENCE,
    load_policy,
    policy_from_dict,
    validate_policy,
)

__all__ = [
    # Cadence
    "CadenceResult",
    "add_days",
    "explain_cadence",
    "generate_follow_up_tasks",
    "same_calendar_day",
    # Policies
    "DEFAULT_CADENCE",
    "load_policy",
    "policy_from_dict",
    "validate_policy",
    # Planner
    "FollowUpPlanner",
    "FollowUpReport",
    "TaskStore",
]
