"""Tests for the follow-up cadence engine.

Covers:
    - Task generation from policy rules (offsets, order, field propagation)
    - Duplicate detection on lead, title, channel and calendar day
    - Terminal-stage short-circuit (Booked, Lost)
    - Idempotence and determinism
    - Date helpers
    - Cadence explanation
"""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from itertools import count

import pytest

from leadflow.db.models import (
    CadencePolicy,
    CadenceRule,
    Channel,
    LeadStage,
    Task,
    TaskStatus,
)
from leadflow.engine.cadence import (
    CadenceResult,
    add_days,
    explain_cadence,
    generate_follow_up_tasks,
    same_calendar_day,
    to_datetime,
)
from leadflow.engine.policies import DEFAULT_CADENCE


def _task(**overrides) -> Task:
    fields = dict(
        id="task-1",
        lead_id="lead-1",
        title="Send welcome email",
        due_at=datetime(2026, 1, 10),
        status=TaskStatus.TODO,
        channel=Channel.EMAIL,
    )
    fields.update(overrides)
    return Task(**fields)


# =============================================================================
# GENERATION
# =============================================================================


class TestGenerateTasks:
    """Test task generation for a lead with no existing tasks."""

    def test_creates_one_task_per_rule(self, new_lead, three_touch, reference_date):
        """Three rules, no existing tasks: three new tasks, nothing skipped."""
        result = generate_follow_up_tasks(new_lead, three_touch, [], reference_date)

        assert len(result.tasks_to_create) == 3
        assert result.duplicate_count == 0
        assert result.stopped is False
        assert result.reason is None

    def test_due_dates_follow_offsets(self, new_lead, three_touch, reference_date):
        """Offsets 0, 2, 5 from 2026-01-10 land on the 10th, 12th and 15th."""
        result = generate_follow_up_tasks(new_lead, three_touch, [], reference_date)

        due_days = [t.due_at.date() for t in result.tasks_to_create]
        assert due_days == [date(2026, 1, 10), date(2026, 1, 12), date(2026, 1, 15)]

    def test_first_task_fields(self, new_lead, three_touch, reference_date):
        """Rule fields are copied onto the task."""
        task = generate_follow_up_tasks(new_lead, three_touch, [], reference_date).tasks_to_create[0]

        assert task.title == "Send welcome email"
        assert task.channel == Channel.EMAIL
        assert task.template_id == "email-1"
        assert task.lead_id == "lead-1"
        assert task.status == TaskStatus.TODO

    def test_missing_template_id_propagates_as_none(self, new_lead, three_touch, reference_date):
        """A rule without a template gives a task without a template."""
        task = generate_follow_up_tasks(new_lead, three_touch, [], reference_date).tasks_to_create[2]
        assert task.title == "Follow-up call"
        assert task.template_id is None

    def test_output_follows_rule_order_not_offset_order(self, new_lead, reference_date):
        """Unsorted rules come back in declared order."""
        policy = CadencePolicy(
            id="unsorted",
            name="Unsorted",
            rules=[
                CadenceRule(7, Channel.CALL, "Late call"),
                CadenceRule(0, Channel.EMAIL, "Early email"),
                CadenceRule(3, Channel.SMS, "Middle text"),
            ],
        )
        result = generate_follow_up_tasks(new_lead, policy, [], reference_date)
        assert [t.title for t in result.tasks_to_create] == ["Late call", "Early email", "Middle text"]

    def test_ids_are_unique(self, new_lead, three_touch, reference_date):
        """Every proposed task gets its own id."""
        result = generate_follow_up_tasks(new_lead, three_touch, [], reference_date)
        ids = [t.id for t in result.tasks_to_create]
        assert len(set(ids)) == len(ids)
        assert all(ids)

    def test_id_factory_is_used(self, new_lead, three_touch, reference_date):
        """Injected id factory supplies task ids."""
        counter = count(1)
        result = generate_follow_up_tasks(
            new_lead, three_touch, [], reference_date, id_factory=lambda: f"t{next(counter)}"
        )
        assert [t.id for t in result.tasks_to_create] == ["t1", "t2", "t3"]

    def test_empty_policy(self, new_lead, reference_date):
        """No rules: empty, non-stopped result."""
        policy = CadencePolicy(id="empty", name="Empty", rules=[])
        result = generate_follow_up_tasks(new_lead, policy, [], reference_date)

        assert result.tasks_to_create == []
        assert result.duplicate_count == 0
        assert result.stopped is False

    def test_non_terminal_stages_generate(self, new_lead, three_touch, reference_date):
        """Every non-terminal stage gets tasks."""
        for stage in (
            LeadStage.NEW,
            LeadStage.CONTACTED,
            LeadStage.QUALIFIED,
            LeadStage.PROPOSAL_SENT,
        ):
            lead = replace(new_lead, stage=stage)
            result = generate_follow_up_tasks(lead, three_touch, [], reference_date)
            assert len(result.tasks_to_create) == 3, stage

    def test_reference_date_defaults_to_now(self, new_lead, three_touch):
        """Without a reference date, offset 0 is due today."""
        before = datetime.now()
        result = generate_follow_up_tasks(new_lead, three_touch, [])
        after = datetime.now()

        assert before <= result.tasks_to_create[0].due_at <= after

    def test_plain_date_reference(self, new_lead, three_touch):
        """A date reference is treated as midnight of that day."""
        result = generate_follow_up_tasks(new_lead, three_touch, [], date(2026, 1, 10))
        assert result.tasks_to_create[1].due_at == datetime(2026, 1, 12)

    def test_large_offset_not_bounded(self, new_lead, reference_date):
        """Large offsets are accepted as-is."""
        policy = CadencePolicy(
            id="long", name="Long", rules=[CadenceRule(3650, Channel.EMAIL, "Ten years on")]
        )
        result = generate_follow_up_tasks(new_lead, policy, [], reference_date)
        assert result.tasks_to_create[0].due_at == reference_date + timedelta(days=3650)

    def test_overflowing_offset_fails_loudly(self, new_lead):
        """Date arithmetic past datetime.max raises instead of being swallowed."""
        policy = CadencePolicy(
            id="overflow", name="Overflow", rules=[CadenceRule(10, Channel.EMAIL, "Never")]
        )
        with pytest.raises(OverflowError):
            generate_follow_up_tasks(new_lead, policy, [], datetime(9999, 12, 30))

    def test_accepts_any_iterable_of_tasks(self, new_lead, three_touch, reference_date):
        """Existing tasks may be a generator."""
        existing = (t for t in [_task()])
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)
        assert result.duplicate_count == 1


# =============================================================================
# DUPLICATES
# =============================================================================


class TestDuplicateDetection:
    """Test reconciliation against existing tasks."""

    def test_skips_matching_task(self, new_lead, three_touch, reference_date):
        """Existing task matching rule 1 leaves rules 2 and 3."""
        result = generate_follow_up_tasks(new_lead, three_touch, [_task()], reference_date)

        assert len(result.tasks_to_create) == 2
        assert result.duplicate_count == 1
        assert result.tasks_to_create[0].title == "Quick check-in"

    def test_time_of_day_ignored(self, new_lead, three_touch):
        """Task due 14:30 matches a proposal due 08:00 on the same day."""
        existing = [_task(due_at=datetime(2026, 1, 10, 14, 30))]
        result = generate_follow_up_tasks(
            new_lead, three_touch, existing, datetime(2026, 1, 10, 8, 0)
        )
        assert result.duplicate_count == 1
        assert len(result.tasks_to_create) == 2

    def test_previous_day_is_not_duplicate(self, new_lead, three_touch, reference_date):
        """Same title and channel one day earlier does not count."""
        existing = [_task(due_at=datetime(2026, 1, 9))]
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)

        assert result.duplicate_count == 0
        assert len(result.tasks_to_create) == 3

    def test_other_lead_is_not_duplicate(self, new_lead, three_touch, reference_date):
        """Identical task on another lead never suppresses creation."""
        existing = [_task(lead_id="different-lead")]
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)

        assert result.duplicate_count == 0
        assert len(result.tasks_to_create) == 3

    def test_different_title_is_not_duplicate(self, new_lead, three_touch, reference_date):
        """Title must match exactly."""
        existing = [_task(title="Send Welcome Email")]
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)
        assert result.duplicate_count == 0

    def test_different_channel_is_not_duplicate(self, new_lead, three_touch, reference_date):
        """Channel must match."""
        existing = [_task(channel=Channel.SMS)]
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)
        assert result.duplicate_count == 0

    def test_task_without_channel_is_not_duplicate(self, new_lead, three_touch, reference_date):
        """A channel-less task never matches a rule."""
        existing = [_task(channel=None)]
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)
        assert result.duplicate_count == 0

    def test_done_tasks_still_count(self, new_lead, three_touch, reference_date):
        """Completed tasks are still duplicates."""
        existing = [_task(status=TaskStatus.DONE)]
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)
        assert result.duplicate_count == 1

    def test_all_rules_covered(self, new_lead, three_touch, reference_date):
        """Every rule covered: nothing created, all counted."""
        existing = [
            _task(id="a"),
            _task(id="b", title="Quick check-in", channel=Channel.SMS, due_at=datetime(2026, 1, 12, 17)),
            _task(id="c", title="Follow-up call", channel=Channel.CALL, due_at=datetime(2026, 1, 15, 9)),
        ]
        result = generate_follow_up_tasks(new_lead, three_touch, existing, reference_date)

        assert result.tasks_to_create == []
        assert result.duplicate_count == 3
        assert result.stopped is False


# =============================================================================
# TERMINAL STAGES
# =============================================================================


class TestTerminalStages:
    """Test the terminal-stage short-circuit."""

    @pytest.mark.parametrize("stage", [LeadStage.BOOKED, LeadStage.LOST])
    def test_terminal_lead_stops(self, new_lead, three_touch, stage):
        """Booked and Lost leads get no tasks and a reason naming the stage."""
        lead = replace(new_lead, stage=stage)
        result = generate_follow_up_tasks(lead, three_touch, [])

        assert result.stopped is True
        assert result.tasks_to_create == []
        assert result.duplicate_count == 0
        assert stage.value in result.reason

    def test_lost_ignores_existing_tasks(self, new_lead, three_touch, reference_date):
        """Existing tasks do not change the stop decision."""
        lead = replace(new_lead, stage=LeadStage.LOST)
        result = generate_follow_up_tasks(lead, three_touch, [_task()], reference_date)

        assert result.stopped is True
        assert result.duplicate_count == 0
        assert "Lost" in result.reason


# =============================================================================
# IDEMPOTENCE & DETERMINISM
# =============================================================================


class TestIdempotence:
    """Test re-running the engine after saving its output."""

    def test_second_run_creates_nothing(self, new_lead, reference_date):
        """Saving the output and re-running skips every rule."""
        first = generate_follow_up_tasks(new_lead, DEFAULT_CADENCE, [], reference_date)
        second = generate_follow_up_tasks(
            new_lead, DEFAULT_CADENCE, first.tasks_to_create, reference_date
        )

        assert second.tasks_to_create == []
        assert second.duplicate_count == len(DEFAULT_CADENCE.rules)

    def test_partial_save_resumes(self, new_lead, reference_date):
        """After saving only some tasks, the rest are proposed again."""
        first = generate_follow_up_tasks(new_lead, DEFAULT_CADENCE, [], reference_date)
        saved = first.tasks_to_create[:2]
        second = generate_follow_up_tasks(new_lead, DEFAULT_CADENCE, saved, reference_date)

        assert second.duplicate_count == 2
        assert [t.title for t in second.tasks_to_create] == [
            t.title for t in first.tasks_to_create[2:]
        ]


class TestDeterminism:
    """Test identical inputs give identical output."""

    def test_same_inputs_same_output(self, new_lead, three_touch, reference_date):
        """Only ids differ between runs."""
        result1 = generate_follow_up_tasks(new_lead, three_touch, [], reference_date)
        result2 = generate_follow_up_tasks(new_lead, three_touch, [], reference_date)

        assert len(result1.tasks_to_create) == len(result2.tasks_to_create)
        assert result1.duplicate_count == result2.duplicate_count
        assert result1.stopped == result2.stopped
        for task1, task2 in zip(result1.tasks_to_create, result2.tasks_to_create):
            assert task1.title == task2.title
            assert task1.channel == task2.channel
            assert task1.due_at.isoformat() == task2.due_at.isoformat()
            assert replace(task1, id="") == replace(task2, id="")


# =============================================================================
# DATE HELPERS
# =============================================================================


class TestDateHelpers:
    """Test calendar-day arithmetic and comparison."""

    def test_add_days_keeps_wall_clock(self):
        """Adding days keeps the time of day."""
        assert add_days(datetime(2026, 1, 10, 8, 15), 5) == datetime(2026, 1, 15, 8, 15)

    def test_add_days_crosses_month(self):
        """Month and year boundaries are handled."""
        assert add_days(datetime(2026, 12, 30), 3) == datetime(2027, 1, 2)

    def test_add_days_keeps_tzinfo(self):
        """Aware datetimes stay aware in the same zone."""
        tz = timezone(timedelta(hours=-5))
        result = add_days(datetime(2026, 3, 1, 9, 0, tzinfo=tz), 10)
        assert result.tzinfo is tz
        assert result.hour == 9

    def test_offset_correctness(self):
        """Offset N lands exactly N calendar days later."""
        start = datetime(2026, 2, 27, 23, 59)
        for n in (0, 1, 2, 30, 365):
            assert (add_days(start, n).date() - start.date()).days == n

    def test_same_calendar_day(self):
        """Same date, different times."""
        assert same_calendar_day(datetime(2026, 1, 10, 0, 0), datetime(2026, 1, 10, 23, 59))
        assert not same_calendar_day(datetime(2026, 1, 10, 23, 59), datetime(2026, 1, 11, 0, 0))

    def test_same_calendar_day_aware_uses_second_zone(self):
        """Aware values are compared in the proposal's timezone."""
        utc = timezone.utc
        eastern = timezone(timedelta(hours=-5))
        existing = datetime(2026, 1, 11, 2, 0, tzinfo=utc)  # 21:00 on the 10th in eastern
        proposed = datetime(2026, 1, 10, 9, 0, tzinfo=eastern)
        assert same_calendar_day(existing, proposed)

    def test_to_datetime(self):
        """Dates become midnight; datetimes pass through."""
        assert to_datetime(date(2026, 1, 10)) == datetime(2026, 1, 10)
        moment = datetime(2026, 1, 10, 12, 0)
        assert to_datetime(moment) is moment


# =============================================================================
# EXPLANATION
# =============================================================================


class TestExplainCadence:
    """Test the human-readable cadence summary."""

    def test_touch_count_and_duration(self, three_touch):
        """Mentions the number of touches and the longest offset."""
        explanation = explain_cadence(three_touch)
        assert "3-touch" in explanation
        assert "5 days" in explanation

    def test_single_rule(self):
        """One rule at offset 0 is a 0-day cadence."""
        policy = CadencePolicy(
            id="single", name="Single Touch", rules=[CadenceRule(0, Channel.EMAIL, "Welcome")]
        )
        explanation = explain_cadence(policy)
        assert "1-touch" in explanation
        assert "0 days" in explanation
        assert "emails" in explanation

    def test_empty_policy_does_not_raise(self):
        """Empty policy explains as 0 touches over 0 days."""
        explanation = explain_cadence(CadencePolicy(id="empty", name="Empty"))
        assert "0-touch" in explanation
        assert "0 days" in explanation

    def test_duration_uses_max_not_last(self):
        """Duration is the largest offset even when rules are unsorted."""
        policy = CadencePolicy(
            id="unsorted",
            name="Unsorted",
            rules=[CadenceRule(9, Channel.CALL, "Call"), CadenceRule(2, Channel.SMS, "Text")],
        )
        assert "9 days" in explain_cadence(policy)

    def test_channel_mix(self):
        """Default cadence lists all three channels."""
        explanation = explain_cadence(DEFAULT_CADENCE)
        assert explanation == (
            "This 5-touch cadence spreads follow-ups over 8 days, "
            "combining emails, SMS, and calls."
        )

    def test_single_day_wording(self):
        """A one-day cadence says 'day'."""
        policy = CadencePolicy(
            id="short", name="Short", rules=[CadenceRule(1, Channel.SMS, "Text")]
        )
        assert "over 1 day," in explain_cadence(policy)


class TestCadenceResult:
    """Test result defaults."""

    def test_defaults(self):
        """Fresh result is empty and not stopped."""
        result = CadenceResult()
        assert result.tasks_to_create == []
        assert result.duplicate_count == 0
        assert result.stopped is False
        assert result.reason is None
