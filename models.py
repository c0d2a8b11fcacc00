"""
Task model for the dashboard, plus the error taxonomy reported by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# ─── Vocabulary ────────────────────────────────────────────────────────────────

PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"

STATUS_CYCLE = (PENDING, IN_PROGRESS, COMPLETED)

PRIORITIES = ("high", "medium", "low")
DEFAULT_PRIORITY = "medium"

CATEGORIES = ("work", "personal")

STATUS_LABELS = {
    PENDING: "Pending",
    IN_PROGRESS: "In Progress",
    COMPLETED: "Completed",
}

# Fields a caller may change through update_fields().
EDITABLE_FIELDS = {'title', 'description', 'due_date', 'category'}


# ─── Task ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Task:
    handle: str
    display_id: int
    title: str
    description: str = ""
    due_date: Optional[str] = None
    status: str = PENDING
    priority: str = DEFAULT_PRIORITY
    category: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_record(cls, handle: str, display_id: int, record: dict) -> "Task":
        """Build a task from a stored document, coercing unknown enum values."""
        status = record.get('status')
        if status not in STATUS_CYCLE:
            status = PENDING
        priority = record.get('priority')
        if priority not in PRIORITIES:
            priority = DEFAULT_PRIORITY
        category = record.get('category')
        if category not in CATEGORIES:
            category = None
        return cls(
            handle=handle,
            display_id=display_id,
            title=str(record.get('title') or ""),
            description=str(record.get('description') or ""),
            due_date=record.get('due_date') or None,
            status=status,
            priority=priority,
            category=category,
            created_at=record.get('created_at'),
            completed_at=record.get('completed_at'),
        )


@dataclass
class TaskDraft:
    """User input for a new task, before the engine fills in defaults."""
    title: str
    description: str = ""
    due_date: Optional[str] = None
    priority: str = DEFAULT_PRIORITY
    category: Optional[str] = None


# ─── Errors ────────────────────────────────────────────────────────────────────

class TaskEngineError(Exception):
    """Base for every condition the engine reports in its error slot."""
    kind = "TaskEngineError"

    def __init__(self, message: str, *, handle: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.handle = handle

    def __str__(self):
        return self.message


class LoadFailed(TaskEngineError):
    kind = "LoadFailed"


class CreateFailed(TaskEngineError):
    kind = "CreateFailed"


class DeleteFailed(TaskEngineError):
    kind = "DeleteFailed"


class StatusUpdateFailed(TaskEngineError):
    kind = "StatusUpdateFailed"


class PriorityUpdateFailed(TaskEngineError):
    kind = "PriorityUpdateFailed"


class UpdateFailed(TaskEngineError):
    kind = "UpdateFailed"


class TaskNotFound(TaskEngineError):
    kind = "TaskNotFound"
