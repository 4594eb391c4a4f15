"""Follow-up planner: runs the cadence engine against a task store.

The engine only proposes tasks. The planner owns the read, compute and
save sequence:
    1. Take the lead's lock (one plan per lead at a time)
    2. Snapshot the lead's current tasks
    3. Run the engine
    4. Save each proposed task and log a task_created activity

Without the lock two concurrent plans for the same lead could both decide
a task is missing and both save it.

Usage:
    from leadflow.engine.followup import FollowUpPlanner

    planner = FollowUpPlanner(store)
    report = planner.plan(lead)
    print(report.message)
"""

import threading
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

from leadflow.core.exceptions import PersistenceError
from leadflow.core.logging import get_logger, lead_context
from leadflow.db.models import Activity, ActivityType, CadencePolicy, Lead, Task
from leadflow.engine.cadence import CadenceResult, DateLike, generate_follow_up_tasks
from leadflow.engine.policies import DEFAULT_CADENCE

logger = get_logger(__name__)


class TaskStore(Protocol):
    """Persistence the planner needs. Implemented outside LeadFlow."""

    def list_tasks(self, lead_id: str) -> list[Task]:
        """Return every task currently stored for a lead."""
        ...

    def add_task(self, task: Task) -> None:
        """Store a new task."""
        ...

    def add_activity(self, activity: Activity) -> None:
        """Append an activity to a lead's log."""
        ...


@dataclass
class FollowUpReport:
    """What a planning run did.

    Attributes:
        created: Tasks that were saved
        skipped: Rules skipped as duplicates
        stopped: True when the lead's stage forbids follow-up
        message: Summary for the user
    """

    created: list[Task] = field(default_factory=list)
    skipped: int = 0
    stopped: bool = False
    message: str = ""


def summarize(result: CadenceResult) -> str:
    """Build the user-facing message for an engine result."""
    if result.stopped:
        return result.reason or "Cannot generate tasks for this lead."

    created = len(result.tasks_to_create)
    skipped = result.duplicate_count
    if created == 0 and skipped > 0:
        return f"All {skipped} tasks already exist. No new tasks created."
    if created == 0:
        return "This cadence has no follow-up tasks to create."
    if skipped > 0:
        return f"Created {created} new tasks. Skipped {skipped} duplicates."
    return f"Created {created} follow-up tasks!"


class FollowUpPlanner:
    """Applies a cadence policy to leads, saving the tasks it proposes.

    Attributes:
        store: Task store to read from and write to
        policy: Policy applied when plan() is not given one
    """

    def __init__(self, store: TaskStore, policy: Optional[CadencePolicy] = None):
        self.store = store
        self.policy = policy or DEFAULT_CADENCE
        # Entries vanish once no plan() call holds the lead's lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, lead_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(lead_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[lead_id] = lock
            return lock

    def preview(
        self,
        lead: Lead,
        reference_date: Optional[DateLike] = None,
        policy: Optional[CadencePolicy] = None,
    ) -> CadenceResult:
        """Run the engine against the stored tasks without saving anything."""
        return generate_follow_up_tasks(
            lead,
            policy or self.policy,
            self.store.list_tasks(lead.id),
            reference_date=reference_date,
        )

    def plan(
        self,
        lead: Lead,
        reference_date: Optional[DateLike] = None,
        policy: Optional[CadencePolicy] = None,
    ) -> FollowUpReport:
        """Generate and save the follow-up tasks a lead still needs.

        Args:
            lead: Lead to plan for
            reference_date: Offsets are measured from here. Defaults to now.
            policy: Policy to apply. Defaults to the planner's policy.

        Returns:
            FollowUpReport with the saved tasks and a summary message

        Raises:
            PersistenceError: If the store fails while saving. Tasks saved
                before the failure stay saved; planning again skips them.
        """
        policy = policy or self.policy

        with self._lock_for(lead.id):
            result = generate_follow_up_tasks(
                lead,
                policy,
                self.store.list_tasks(lead.id),
                reference_date=reference_date,
            )

            report = FollowUpReport(
                skipped=result.duplicate_count,
                stopped=result.stopped,
                message=summarize(result),
            )
            if result.stopped:
                logger.info(
                    "Follow-up plan stopped",
                    extra={"context": lead_context(lead)},
                )
                return report

            for task in result.tasks_to_create:
                try:
                    self.store.add_task(task)
                    report.created.append(task)
                    self.store.add_activity(
                        Activity(
                            id=uuid.uuid4().hex,
                            lead_id=lead.id,
                            activity_type=ActivityType.TASK_CREATED,
                            body=f"Task created: {task.title} (due {task.due_at.date().isoformat()})",
                            created_at=datetime.now(),
                        )
                    )
                except Exception as e:
                    logger.error(
                        f"Failed to save follow-up task: {e}",
                        exc_info=True,
                        extra={
                            "context": {
                                "lead_id": lead.id,
                                "task_title": task.title,
                                "saved": len(report.created),
                            }
                        },
                    )
                    raise PersistenceError(
                        f"Saved {len(report.created)} of {len(result.tasks_to_create)} "
                        f"follow-up tasks for lead {lead.id}: {e}"
                    ) from e

        logger.info(
            "Follow-up plan applied",
            extra={
                "context": lead_context(
                    lead,
                    policy_id=policy.id,
                    created=len(report.created),
                    skipped=report.skipped,
                )
            },
        )
        return report
