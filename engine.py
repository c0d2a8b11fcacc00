"""
Task lifecycle engine.

Holds the in-memory snapshot of a user's tasks and keeps it in step with the
document store: every mutation is written to the store first and then the
whole snapshot is reloaded. Nothing is patched locally, so what the pages show
is always what the store last returned.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from models import (
    CATEGORIES, COMPLETED, DEFAULT_PRIORITY, EDITABLE_FIELDS, PENDING,
    PRIORITIES, STATUS_CYCLE, CreateFailed, DeleteFailed, LoadFailed,
    PriorityUpdateFailed, StatusUpdateFailed, Task, TaskDraft, TaskEngineError,
    TaskNotFound, UpdateFailed,
)
from database import DocumentNotFound
from due_dates import parse_due_date
from views import stats, view

logger = logging.getLogger(__name__)


# ─── Status transitions ────────────────────────────────────────────────────────

def next_status(current: str) -> str:
    """pending -> in_progress -> completed -> pending."""
    if current not in STATUS_CYCLE:
        raise ValueError(f"Unknown status: {current!r}")
    return STATUS_CYCLE[(STATUS_CYCLE.index(current) + 1) % len(STATUS_CYCLE)]


def toggled_status(current: str) -> str:
    """Two-state workflow: completed <-> pending."""
    if current not in STATUS_CYCLE:
        raise ValueError(f"Unknown status: {current!r}")
    return PENDING if current == COMPLETED else COMPLETED


# ─── Identifier mapping ────────────────────────────────────────────────────────

class IdentifierMapper:
    """Display ids (1..N in listing order) for the current snapshot.

    Display ids change on every reload. Store handles don't, so the engine
    addresses tasks by handle and keeps the display id only for showing.
    """

    def __init__(self):
        self._handles: dict[int, str] = {}
        self._ids: dict[str, int] = {}
        self.generation = 0

    def rebuild(self, rows: Iterable[tuple[str, dict]]) -> list[Task]:
        tasks = [Task.from_record(handle, index + 1, record)
                 for index, (handle, record) in enumerate(rows)]
        self._handles = {t.display_id: t.handle for t in tasks}
        self._ids = {t.handle: t.display_id for t in tasks}
        self.generation += 1
        return tasks

    def resolve(self, display_id: int) -> str:
        try:
            return self._handles[display_id]
        except KeyError:
            raise TaskNotFound(f"Task #{display_id} no longer exists.") from None

    def __contains__(self, handle) -> bool:
        return handle in self._ids


# ─── Task board (status partitions) ────────────────────────────────────────────

class TaskBoard:
    """Tasks split by status. Only replace_all() changes it."""

    def __init__(self):
        self._partitions: dict[str, tuple[Task, ...]] = {s: () for s in STATUS_CYCLE}
        self._by_handle: dict[str, Task] = {}

    def replace_all(self, tasks: Iterable[Task]):
        buckets: dict[str, list[Task]] = {s: [] for s in STATUS_CYCLE}
        for task in tasks:
            buckets[task.status].append(task)
        self._partitions = {s: tuple(items) for s, items in buckets.items()}
        self._by_handle = {t.handle: t for items in buckets.values() for t in items}

    def partition_of(self, status: str) -> list[Task]:
        if status not in self._partitions:
            raise ValueError(f"Unknown status: {status!r}")
        return list(self._partitions[status])

    def count_of(self, status: str) -> int:
        return len(self.partition_of(status))

    def all_tasks(self) -> list[Task]:
        """Every task, in display id order."""
        return sorted(self._by_handle.values(), key=lambda t: t.display_id)

    def get(self, handle: str) -> Optional[Task]:
        return self._by_handle.get(handle)

    @property
    def total(self) -> int:
        return len(self._by_handle)

    def state(self) -> dict[str, tuple[Task, ...]]:
        return dict(self._partitions)


# ─── Engine ────────────────────────────────────────────────────────────────────

@dataclass
class DashboardSnapshot:
    partitions: dict
    stats: list
    view: list
    error: Optional[TaskEngineError] = None
    generation: int = 0


class TaskEngine:
    """Owns the task snapshot for one signed-in user.

    Mutations return True/False and never raise; a failure lands in
    `last_error` and leaves the board at its last good snapshot.
    """

    def __init__(self, store, *, workflow: str = "three_state"):
        self.store = store
        self.workflow = workflow
        self.mapper = IdentifierMapper()
        self.board = TaskBoard()
        self.last_error: Optional[TaskEngineError] = None
        self.loading = False
        self._store_ready = False
        self._lock = threading.RLock()

    # ---- error slot ----

    def clear_error(self):
        self.last_error = None

    def _fail(self, error: TaskEngineError) -> bool:
        self.last_error = error
        return False

    # ---- reload ----

    def reload(self) -> bool:
        with self._lock:
            self.loading = True
            try:
                self._reload()
                return True
            except TaskEngineError as e:
                return self._fail(e)
            finally:
                self.loading = False

    def _prepare_store(self):
        if self._store_ready:
            return
        try:
            self.store.init_db()
        except Exception as e:
            logger.exception("Preparing the task store failed")
            raise LoadFailed(f"Task store unavailable: {e}") from e
        self._store_ready = True

    def _reload(self):
        self._prepare_store()
        try:
            rows = self.store.list_all()
        except Exception as e:
            logger.exception("Loading tasks failed")
            raise LoadFailed(f"Failed to fetch tasks: {e}") from e
        mapper = IdentifierMapper()
        mapper.generation = self.mapper.generation
        tasks = mapper.rebuild(rows)
        self.board.replace_all(tasks)
        self.mapper = mapper
        logger.info("Reloaded %d tasks (generation %d)", len(tasks), mapper.generation)

    def resolve(self, ref) -> str:
        """Handle for `ref` (a handle or a Task) if the current snapshot still lists it.

        Display ids are not accepted: they are renumbered on every reload.
        """
        if isinstance(ref, Task):
            ref = ref.handle
        if isinstance(ref, str) and ref in self.mapper:
            return ref
        raise TaskNotFound("Task no longer exists.", handle=ref if isinstance(ref, str) else None)

    def _mutate(self, ref, failure, action: str, write) -> bool:
        """Resolve, write, reload. `write(handle, task)` performs the store call."""
        with self._lock:
            self.loading = True
            try:
                handle = self.resolve(ref)
                task = self.board.get(handle)
                try:
                    write(handle, task)
                except TaskEngineError:
                    raise
                except DocumentNotFound as e:
                    # Removed in the store since our last reload.
                    raise TaskNotFound("Task no longer exists.", handle=handle) from e
                except Exception as e:
                    logger.exception("%s failed handle=%s", action, handle)
                    raise failure(f"{action} failed: {e}", handle=handle) from e
                logger.info("%s ok handle=%s", action, handle)
                self._reload()
                return True
            except TaskEngineError as e:
                return self._fail(e)
            finally:
                self.loading = False

    # ---- create / delete ----

    def create(self, draft: TaskDraft) -> bool:
        with self._lock:
            self.loading = True
            try:
                record = self._merged_record(draft)
                self._prepare_store()
                try:
                    handle = self.store.create(record)
                except Exception as e:
                    logger.exception("Create failed")
                    raise CreateFailed(f"Failed to create task: {e}") from e
                logger.info("Created task handle=%s", handle)
                self._reload()
                return True
            except TaskEngineError as e:
                return self._fail(e)
            finally:
                self.loading = False

    @staticmethod
    def _merged_record(draft: TaskDraft) -> dict:
        title = (draft.title or "").strip()
        if not title:
            raise CreateFailed("A task needs a title.")
        priority = draft.priority or DEFAULT_PRIORITY
        if priority not in PRIORITIES:
            raise CreateFailed(f"Unknown priority: {priority}")
        if draft.category is not None and draft.category not in CATEGORIES:
            raise CreateFailed(f"Unknown category: {draft.category}")
        try:
            due = parse_due_date(draft.due_date)
        except ValueError:
            raise CreateFailed(f"Invalid due date: {draft.due_date}") from None
        return {
            'title': title,
            'description': (draft.description or "").strip(),
            'due_date': due.isoformat() if due else None,
            'status': PENDING,
            'priority': priority,
            'category': draft.category,
            'created_at': datetime.now().isoformat(timespec="seconds"),
            'completed_at': None,
        }

    def delete(self, ref) -> bool:
        return self._mutate(ref, DeleteFailed, "Delete",
                            lambda handle, task: self.store.delete(handle))

    # ---- status ----

    def set_status(self, ref, target: str) -> bool:
        if target not in STATUS_CYCLE:
            return self._fail(StatusUpdateFailed(f"Unknown status: {target}"))

        def write(handle, task):
            self.store.update(handle, self._status_fields(target))

        return self._mutate(ref, StatusUpdateFailed, f"Status -> {target}", write)

    def advance(self, ref) -> bool:
        """Move a task to its next status under the configured workflow."""
        step = toggled_status if self.workflow == "two_state" else next_status
        return self._transition(ref, step)

    def toggle(self, ref) -> bool:
        return self._transition(ref, toggled_status)

    def _transition(self, ref, step) -> bool:
        def write(handle, task):
            self.store.update(handle, self._status_fields(step(task.status)))

        return self._mutate(ref, StatusUpdateFailed, "Status change", write)

    @staticmethod
    def _status_fields(target: str) -> dict:
        completed_at = datetime.now().isoformat(timespec="seconds") if target == COMPLETED else None
        return {'status': target, 'completed_at': completed_at}

    # ---- priority / fields ----

    def set_priority(self, ref, priority: str) -> bool:
        if priority not in PRIORITIES:
            return self._fail(PriorityUpdateFailed(f"Unknown priority: {priority}"))
        return self._mutate(ref, PriorityUpdateFailed, "Priority change",
                            lambda handle, task: self.store.update(handle, {'priority': priority}))

    def update_fields(self, ref, **fields) -> bool:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            return self._fail(UpdateFailed(f"Cannot edit: {', '.join(sorted(unknown))}"))
        try:
            clean = self._clean_fields(fields)
        except UpdateFailed as e:
            return self._fail(e)
        return self._mutate(ref, UpdateFailed, "Edit",
                            lambda handle, task: self.store.update(handle, clean))

    @staticmethod
    def _clean_fields(fields: dict) -> dict:
        clean = {}
        if 'title' in fields:
            title = (fields['title'] or "").strip()
            if not title:
                raise UpdateFailed("A task needs a title.")
            clean['title'] = title
        if 'description' in fields:
            clean['description'] = (fields['description'] or "").strip()
        if 'due_date' in fields:
            try:
                due = parse_due_date(fields['due_date'])
            except ValueError:
                raise UpdateFailed(f"Invalid due date: {fields['due_date']}") from None
            clean['due_date'] = due.isoformat() if due else None
        if 'category' in fields:
            if fields['category'] is not None and fields['category'] not in CATEGORIES:
                raise UpdateFailed(f"Unknown category: {fields['category']}")
            clean['category'] = fields['category']
        return clean

    # ---- consumer surface ----

    def snapshot(self, *, status: str = PENDING, query: str = "", order: str = "asc") -> DashboardSnapshot:
        return DashboardSnapshot(
            partitions=self.board.state(),
            stats=stats(self.board, workflow=self.workflow),
            view=view(self.board.partition_of(status), query, order),
            error=self.last_error,
            generation=self.mapper.generation,
        )

