# tests/conftest.py

from __future__ import annotations

from datetime import datetime

import pytest

from engine import TaskEngine

from .fakes import FakeDocumentStore, record


@pytest.fixture()
def now() -> datetime:
    return datetime(2025, 1, 10, 12, 0, 0)


@pytest.fixture()
def store() -> FakeDocumentStore:
    """Three documents, one per status, in listing order."""
    return FakeDocumentStore([
        record("Bug Fixing", status="pending", due_date="2025-01-05", priority="high",
               description="Resolve bugs in the login module."),
        record("Write Report", status="in_progress", due_date="2025-02-10"),
        record("Team Meeting", status="completed", due_date="2024-12-15",
               description="Discuss project milestones."),
    ])


@pytest.fixture()
def engine(store: FakeDocumentStore) -> TaskEngine:
    """Engine over the fake store, already loaded."""
    eng = TaskEngine(store)
    assert eng.reload()
    return eng
