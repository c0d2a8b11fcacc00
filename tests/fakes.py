# tests/fakes.py

from __future__ import annotations

import copy
import itertools

from database import DocumentNotFound


class FakeDocumentStore:
    """
    In-memory stand-in for DocumentStore.

    - Keeps documents in insertion order, like the SQL backends
    - Records every write for assertions
    - `fail_on` names operations that raise instead of writing
    """

    def __init__(self, records: list[dict] | None = None) -> None:
        self._ids = itertools.count(1)
        self.docs: dict[str, dict] = {}
        self.writes: list[tuple[str, str | None, dict | None]] = []
        self.fail_on: set[str] = set()
        self.list_calls = 0
        self.init_calls = 0
        for record in records or []:
            self.docs[self._next_handle()] = dict(record)

    def _next_handle(self) -> str:
        return f"doc-{next(self._ids)}"

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            raise RuntimeError(f"{op} unavailable")

    def init_db(self) -> None:
        self._check("init_db")
        self.init_calls += 1

    def list_all(self) -> list[tuple[str, dict]]:
        self._check("list_all")
        self.list_calls += 1
        return [(h, copy.deepcopy(r)) for h, r in self.docs.items()]

    def create(self, record: dict) -> str:
        self._check("create")
        handle = self._next_handle()
        self.docs[handle] = copy.deepcopy(record)
        self.writes.append(("create", handle, copy.deepcopy(record)))
        return handle

    def delete(self, handle: str) -> None:
        self._check("delete")
        if handle not in self.docs:
            raise DocumentNotFound(handle)
        del self.docs[handle]
        self.writes.append(("delete", handle, None))

    def update(self, handle: str, fields: dict) -> None:
        self._check("update")
        if handle not in self.docs:
            raise DocumentNotFound(handle)
        self.docs[handle].update(fields)
        self.writes.append(("update", handle, dict(fields)))


def record(title: str, *, status: str = "pending", due_date: str | None = None,
           priority: str = "medium", description: str = "") -> dict:
    """Stored document shape for a task."""
    return {
        "title": title,
        "description": description,
        "due_date": due_date,
        "status": status,
        "priority": priority,
        "category": None,
    }
