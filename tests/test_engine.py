# tests/test_engine.py

from __future__ import annotations

import pytest

from engine import IdentifierMapper, TaskBoard, TaskEngine, next_status, toggled_status
from models import (
    COMPLETED, IN_PROGRESS, PENDING, STATUS_CYCLE, TaskDraft, TaskNotFound,
)

from .fakes import FakeDocumentStore, record


# ---- status machine ----

@pytest.mark.parametrize("start", STATUS_CYCLE)
def test_three_steps_return_to_start(start: str) -> None:
    assert next_status(next_status(next_status(start))) == start


def test_cycle_order() -> None:
    assert next_status(PENDING) == IN_PROGRESS
    assert next_status(IN_PROGRESS) == COMPLETED
    assert next_status(COMPLETED) == PENDING


def test_two_state_toggle() -> None:
    assert toggled_status(PENDING) == COMPLETED
    assert toggled_status(COMPLETED) == PENDING
    assert toggled_status(IN_PROGRESS) == COMPLETED
    with pytest.raises(ValueError):
        next_status("archived")


# ---- identifier mapper / board ----

def test_rebuild_assigns_ids_in_listing_order(store: FakeDocumentStore) -> None:
    mapper = IdentifierMapper()
    tasks = mapper.rebuild(store.list_all())
    assert [t.display_id for t in tasks] == [1, 2, 3]
    assert [mapper.resolve(i) for i in (1, 2, 3)] == ["doc-1", "doc-2", "doc-3"]

    board = TaskBoard()
    board.replace_all(tasks)
    assert [board.count_of(s) for s in (PENDING, IN_PROGRESS, COMPLETED)] == [1, 1, 1]
    assert board.partition_of(PENDING)[0].display_id == 1
    assert board.partition_of(IN_PROGRESS)[0].display_id == 2
    assert board.partition_of(COMPLETED)[0].display_id == 3


def test_resolve_miss_raises_task_not_found() -> None:
    mapper = IdentifierMapper()
    mapper.rebuild([("a", record("only"))])
    with pytest.raises(TaskNotFound):
        mapper.resolve(2)


def test_unknown_status_in_store_is_read_as_pending() -> None:
    tasks = IdentifierMapper().rebuild([("a", {"title": "x", "status": "archived", "priority": "urgent"})])
    assert tasks[0].status == PENDING
    assert tasks[0].priority == "medium"


# ---- sync policy ----

def test_reload_populates_board(engine: TaskEngine) -> None:
    assert engine.board.total == 3
    assert engine.mapper.generation == 1
    assert engine.last_error is None


def test_create_persists_merged_record_and_reloads(engine: TaskEngine, store: FakeDocumentStore) -> None:
    calls_before = store.list_calls
    assert engine.create(TaskDraft(title="  New thing ", due_date="2025-03-01", priority="high"))

    op, handle, written = store.writes[-1]
    assert op == "create"
    assert written["status"] == PENDING
    assert written["title"] == "New thing"
    assert written["priority"] == "high"
    assert written["due_date"] == "2025-03-01"
    assert written["created_at"]

    assert store.list_calls == calls_before + 1
    created = engine.board.get(handle)
    assert created is not None and created.display_id == 4
    assert engine.board.count_of(PENDING) == 2


def test_create_rejects_blank_title(engine: TaskEngine, store: FakeDocumentStore) -> None:
    assert not engine.create(TaskDraft(title="   "))
    assert engine.last_error.kind == "CreateFailed"
    assert store.writes == []


def test_advance_cycles_through_store(engine: TaskEngine, store: FakeDocumentStore) -> None:
    assert engine.advance("doc-1")
    assert store.docs["doc-1"]["status"] == IN_PROGRESS
    assert engine.board.count_of(IN_PROGRESS) == 2

    assert engine.advance("doc-1")
    assert store.docs["doc-1"]["status"] == COMPLETED
    assert store.docs["doc-1"]["completed_at"]

    assert engine.advance("doc-1")
    assert store.docs["doc-1"]["status"] == PENDING
    assert store.docs["doc-1"]["completed_at"] is None


def test_two_state_workflow_advance_toggles(store: FakeDocumentStore) -> None:
    eng = TaskEngine(store, workflow="two_state")
    eng.reload()
    assert eng.advance("doc-1")
    assert store.docs["doc-1"]["status"] == COMPLETED
    assert eng.advance("doc-1")
    assert store.docs["doc-1"]["status"] == PENDING


def test_set_status_names_destination(engine: TaskEngine, store: FakeDocumentStore) -> None:
    assert engine.set_status("doc-3", PENDING)
    assert store.docs["doc-3"]["status"] == PENDING
    assert engine.board.count_of(COMPLETED) == 0


def test_status_update_failure_leaves_board_untouched(engine: TaskEngine, store: FakeDocumentStore) -> None:
    before = engine.board.state()
    generation = engine.mapper.generation
    store.fail_on.add("update")

    assert not engine.advance("doc-1")

    assert engine.board.state() == before
    assert engine.mapper.generation == generation
    assert engine.last_error.kind == "StatusUpdateFailed"
    assert engine.loading is False


def test_priority_change_and_failure(engine: TaskEngine, store: FakeDocumentStore) -> None:
    assert engine.set_priority("doc-2", "low")
    assert engine.board.get("doc-2").priority == "low"

    assert not engine.set_priority("doc-2", "urgent")
    assert engine.last_error.kind == "PriorityUpdateFailed"

    store.fail_on.add("update")
    assert not engine.set_priority("doc-2", "high")
    assert engine.last_error.kind == "PriorityUpdateFailed"
    assert engine.board.get("doc-2").priority == "low"


def test_delete_then_stale_reference(engine: TaskEngine, store: FakeDocumentStore) -> None:
    assert engine.delete("doc-3")
    assert "doc-3" not in store.docs
    assert engine.board.total == 2

    writes = len(store.writes)
    assert not engine.advance("doc-3")
    assert engine.last_error.kind == "TaskNotFound"
    assert not engine.set_priority("doc-3", "low")
    assert engine.last_error.kind == "TaskNotFound"
    assert len(store.writes) == writes


def test_stale_handle_removed_elsewhere(engine: TaskEngine, store: FakeDocumentStore) -> None:
    # Another session deletes the document; our snapshot still lists it.
    del store.docs["doc-2"]
    assert not engine.set_status("doc-2", COMPLETED)
    assert engine.last_error.kind == "TaskNotFound"


def test_positions_shift_but_handles_stay(engine: TaskEngine, store: FakeDocumentStore) -> None:
    assert engine.delete("doc-1")
    # "Write Report" is now display id 1 but keeps its handle.
    assert engine.mapper.resolve(1) == "doc-2"
    assert engine.set_priority("doc-2", "high")
    assert store.docs["doc-2"]["priority"] == "high"
    assert store.docs["doc-3"]["priority"] == "medium"


def test_display_id_held_across_reload_touches_nothing(engine: TaskEngine, store: FakeDocumentStore) -> None:
    held = engine.board.get("doc-1").display_id
    assert engine.delete("doc-1")
    writes = len(store.writes)

    assert not engine.set_priority(held, "low")
    assert engine.last_error.kind == "TaskNotFound"
    assert not engine.advance(held)
    assert engine.last_error.kind == "TaskNotFound"
    assert len(store.writes) == writes
    assert store.docs["doc-2"]["priority"] == "medium"
    assert store.docs["doc-2"]["status"] == IN_PROGRESS


def test_task_from_older_snapshot_still_addresses_its_document(engine: TaskEngine, store: FakeDocumentStore) -> None:
    report = engine.board.get("doc-2")
    assert engine.delete("doc-1")
    assert engine.set_priority(report, "low")
    assert store.docs["doc-2"]["priority"] == "low"


def test_store_bug_is_not_reported_as_missing_task(engine: TaskEngine, store: FakeDocumentStore) -> None:
    def broken_update(handle, fields):
        raise KeyError("message")

    store.update = broken_update
    assert not engine.set_priority("doc-1", "low")
    assert engine.last_error.kind == "PriorityUpdateFailed"
    assert not engine.advance("doc-1")
    assert engine.last_error.kind == "StatusUpdateFailed"


def test_store_init_failure_lands_in_error_slot() -> None:
    store = FakeDocumentStore([record("Bug Fixing")])
    store.fail_on.add("init_db")
    eng = TaskEngine(store)

    assert not eng.reload()
    assert eng.last_error.kind == "LoadFailed"
    assert eng.board.total == 0
    assert store.list_calls == 0
    assert not eng.create(TaskDraft(title="New"))
    assert eng.last_error.kind == "LoadFailed"
    assert store.writes == []

    # Store comes back: the next reload prepares it once and loads.
    store.fail_on.clear()
    assert eng.reload()
    assert eng.board.total == 1
    assert eng.reload()
    assert store.init_calls == 1


def test_delete_failure(engine: TaskEngine, store: FakeDocumentStore) -> None:
    store.fail_on.add("delete")
    assert not engine.delete("doc-1")
    assert engine.last_error.kind == "DeleteFailed"
    assert engine.board.total == 3


def test_load_failure_keeps_last_snapshot(engine: TaskEngine, store: FakeDocumentStore) -> None:
    before = engine.board.state()
    store.fail_on.add("list_all")
    assert not engine.reload()
    assert engine.last_error.kind == "LoadFailed"
    assert engine.board.state() == before


def test_write_ok_but_reload_fails(engine: TaskEngine, store: FakeDocumentStore) -> None:
    store.fail_on.add("list_all")
    assert not engine.set_priority("doc-1", "low")
    assert store.docs["doc-1"]["priority"] == "low"
    assert engine.last_error.kind == "LoadFailed"
    assert engine.board.get("doc-1").priority == "high"


def test_update_fields(engine: TaskEngine, store: FakeDocumentStore) -> None:
    assert engine.update_fields("doc-1", title="Fix login", due_date="2025-01-20")
    assert store.docs["doc-1"]["title"] == "Fix login"
    assert engine.board.get("doc-1").due_date == "2025-01-20"

    assert not engine.update_fields("doc-1", status=COMPLETED)
    assert engine.last_error.kind == "UpdateFailed"
    assert not engine.update_fields("doc-1", due_date="someday")
    assert engine.last_error.kind == "UpdateFailed"

    assert engine.update_fields("doc-1", category="work")
    assert store.docs["doc-1"]["category"] == "work"
    assert engine.board.get("doc-1").category == "work"
    assert engine.update_fields("doc-1", category=None)
    assert engine.board.get("doc-1").category is None
    assert not engine.update_fields("doc-1", category="errands")
    assert engine.last_error.kind == "UpdateFailed"


def test_error_slot_last_wins_and_clears(engine: TaskEngine, store: FakeDocumentStore) -> None:
    store.fail_on.add("delete")
    engine.delete("doc-1")
    engine.advance("doc-99")
    assert engine.last_error.kind == "TaskNotFound"
    engine.clear_error()
    assert engine.last_error is None
    # Still usable after failures.
    assert engine.advance("doc-1")


def test_snapshot_surface(engine: TaskEngine) -> None:
    snap = engine.snapshot(status=PENDING, query="bug")
    assert [t.title for t in snap.view] == ["Bug Fixing"]
    assert [(s.label, s.count) for s in snap.stats] == [
        ("Completed", 1), ("In Progress", 1), ("Pending", 1),
    ]
    assert snap.error is None
    assert snap.generation == engine.mapper.generation


def test_toggle_is_two_state_even_in_three_state_engine(engine: TaskEngine, store: FakeDocumentStore) -> None:
    task = engine.board.get("doc-2")
    assert task.status == IN_PROGRESS
    assert engine.toggle(task)
    assert store.docs["doc-2"]["status"] == COMPLETED
    assert engine.toggle("doc-2")
    assert store.docs["doc-2"]["status"] == PENDING
