"""Global fixtures: settings isolated from the environment, a task snapshot, fixed dates."""

from datetime import date

import pytest

from taskrank.config import Settings
from taskrank.core.terms import PropertyTermRegistry
from taskrank.models import Task
from taskrank.utils.llm import reset_manager

# A Wednesday; the week runs Mon 2025-01-13 .. Sun 2025-01-19
TODAY = date(2025, 1, 15)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def registry() -> PropertyTermRegistry:
    return PropertyTermRegistry()


@pytest.fixture
def snapshot(registry: PropertyTermRegistry):
    return registry.snapshot()


@pytest.fixture
def tasks() -> list[Task]:
    """Mixed-language task snapshot covering every due/priority bucket."""
    return [
        Task(
            id="t1",
            text="Fix login bug in auth service",
            priority=1,
            due_date=date(2025, 1, 10),
        ),
        Task(
            id="t2",
            text="Write quarterly report",
            priority=2,
            due_date=date(2025, 1, 17),
        ),
        Task(
            id="t3",
            text="Review pull request for bug fix",
            priority=3,
            status_category="inProgress",
        ),
        Task(
            id="t4",
            text="修复登录页面的bug",
            priority=2,
            due_date=date(2025, 1, 20),
        ),
        Task(
            id="t5",
            text="Plan team offsite",
            due_date=date(2025, 3, 1),
            tags=["team"],
        ),
        Task(
            id="t6",
            text="Update API documentation",
            priority=4,
            due_date=date(2025, 1, 15),
            status_category="completed",
            folder="Work/Docs",
        ),
    ]


@pytest.fixture(autouse=True)
def _fresh_llm_manager():
    """Never share a cached provider between tests."""
    reset_manager()
    yield
    reset_manager()
