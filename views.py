"""
Derived views over the task board: the sorted/filtered list shown on the
dashboard and the counts behind the charts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import pandas as pd

from due_dates import is_overdue, parse_due_date
from models import COMPLETED, IN_PROGRESS, PENDING, PRIORITIES, STATUS_LABELS, Task

SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class StatEntry:
    label: str
    count: int


# ─── Filter / sort ─────────────────────────────────────────────────────────────

def _due_key(task: Task):
    try:
        return parse_due_date(task.due_date)
    except ValueError:
        return None


def sort_by_due(tasks: list[Task], order: str = "asc") -> list[Task]:
    """Stable sort on due date. Tasks without a usable date keep their order at the end."""
    if order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {order!r}")
    keyed = [(_due_key(t), t) for t in tasks]
    dated = [(d, t) for d, t in keyed if d is not None]
    undated = [t for d, t in keyed if d is None]
    # sorted() stays stable with reverse=True, so ties keep input order either way.
    dated = sorted(dated, key=lambda pair: pair[0], reverse=(order == "desc"))
    return [t for _, t in dated] + undated


def matches(task: Task, query: str) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    return q in task.title.lower() or q in task.description.lower()


def view(partition: list[Task], query: str = "", order: str = "asc") -> list[Task]:
    """Sort first, then filter, so the filtered list keeps the sorted order."""
    return [t for t in sort_by_due(list(partition), order) if matches(t, query)]


# ─── Statistics ────────────────────────────────────────────────────────────────

def stats(board, workflow: str = "three_state") -> list[StatEntry]:
    """Counts per status in a fixed label order: Completed, In Progress, Pending."""
    completed = board.count_of(COMPLETED)
    in_progress = board.count_of(IN_PROGRESS)
    pending = board.count_of(PENDING)
    if workflow == "two_state":
        return [
            StatEntry(STATUS_LABELS[COMPLETED], completed),
            StatEntry(STATUS_LABELS[PENDING], pending + in_progress),
        ]
    return [
        StatEntry(STATUS_LABELS[COMPLETED], completed),
        StatEntry(STATUS_LABELS[IN_PROGRESS], in_progress),
        StatEntry(STATUS_LABELS[PENDING], pending),
    ]


def priority_breakdown(board) -> list[StatEntry]:
    counts = {p: 0 for p in PRIORITIES}
    for task in board.all_tasks():
        counts[task.priority] += 1
    return [StatEntry(p.capitalize(), counts[p]) for p in PRIORITIES]


OUTLOOK_LABELS = ("Overdue", "Due Today", "This Week", "Later", "No Due Date")


def due_outlook(board, today: date = None) -> list[StatEntry]:
    """Open (not completed) tasks bucketed by how soon they are due."""
    today = today or date.today()
    counts = dict.fromkeys(OUTLOOK_LABELS, 0)
    for task in board.all_tasks():
        if task.status == COMPLETED:
            continue
        due = _due_key(task)
        if due is None:
            counts["No Due Date"] += 1
        elif due < today:
            counts["Overdue"] += 1
        elif due == today:
            counts["Due Today"] += 1
        elif (due - today).days <= 7:
            counts["This Week"] += 1
        else:
            counts["Later"] += 1
    return [StatEntry(label, counts[label]) for label in OUTLOOK_LABELS]


def stats_frame(entries: list[StatEntry]) -> pd.DataFrame:
    """DataFrame with label/count/pct columns for plotly."""
    df = pd.DataFrame(
        {'label': [e.label for e in entries], 'count': [e.count for e in entries]},
        columns=['label', 'count'],
    )
    total = int(df['count'].sum()) if len(df) else 0
    df['pct'] = (df['count'] / total * 100).round(1) if total else 0.0
    return df


# ─── Presentation rules ────────────────────────────────────────────────────────

def transition_visible(task: Task, *, gate_on_due: bool, now: datetime = None) -> bool:
    """Whether the status button is shown for `task`.

    With gating on, a pending task only offers the button once its due day has
    passed. The engine itself accepts a transition at any time.
    """
    if not gate_on_due or task.status != PENDING:
        return True
    return is_overdue(task.due_date, now)
