"""Shared pytest fixtures for LeadFlow tests.

Fixtures:
    - new_lead: Lead in the New stage
    - three_touch: 3-rule policy at offsets 0, 2, 5
    - reference_date: 2026-01-10 at midnight
    - memory_store: In-memory TaskStore
    - mock_config: Test configuration
"""

from datetime import datetime
from pathlib import Path

import pytest

from leadflow.core.config import Config
from leadflow.db.models import (
    Activity,
    CadencePolicy,
    CadenceRule,
    Channel,
    Lead,
    LeadStage,
    Task,
)


class MemoryTaskStore:
    """TaskStore backed by plain lists."""

    def __init__(self, tasks=None):
        self.tasks: list[Task] = list(tasks or [])
        self.activities: list[Activity] = []

    def list_tasks(self, lead_id: str) -> list[Task]:
        return [t for t in self.tasks if t.lead_id == lead_id]

    def add_task(self, task: Task) -> None:
        self.tasks.append(task)

    def add_activity(self, activity: Activity) -> None:
        self.activities.append(activity)


@pytest.fixture
def new_lead() -> Lead:
    """Lead in the New stage."""
    return Lead(
        id="lead-1",
        full_name="Test User",
        stage=LeadStage.NEW,
        destination="Lisbon",
        timeline="Spring 2026",
        created_at=datetime(2026, 1, 1),
        updated_at=datetime(2026, 1, 1),
    )


@pytest.fixture
def three_touch() -> CadencePolicy:
    """Three-touch policy at offsets 0, 2 and 5."""
    return CadencePolicy(
        id="test-cadence",
        name="Test 3-Touch Cadence",
        rules=[
            CadenceRule(0, Channel.EMAIL, "Send welcome email", "email-1"),
            CadenceRule(2, Channel.SMS, "Quick check-in", "sms-1"),
            CadenceRule(5, Channel.CALL, "Follow-up call"),
        ],
    )


@pytest.fixture
def reference_date() -> datetime:
    """2026-01-10 at midnight."""
    return datetime(2026, 1, 10)


@pytest.fixture
def memory_store() -> MemoryTaskStore:
    """Empty in-memory task store."""
    return MemoryTaskStore()


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """Test configuration with temp paths."""
    return Config(
        log_path=tmp_path / "logs",
        sender_name="Dana Advisor",
        debug=True,
    )


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
