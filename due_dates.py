"""
Due-date helpers: remaining-time labels shown on every task card.
"""

from datetime import date, datetime, time, timedelta

NO_DUE_DATE = "No Due Date"
INVALID_DUE_DATE = "Invalid Due Date"
EXPIRED = "Expired"

# A task is due until the last millisecond of its calendar day.
END_OF_DAY = time(23, 59, 59, 999000)


def parse_due_date(value) -> date | None:
    """Return the calendar date for `value`, None when unset. Raises ValueError on garbage."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported due date: {value!r}")
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text).date()


def due_instant(due_day: date) -> datetime:
    return datetime.combine(due_day, END_OF_DAY)


def remaining(due, now: datetime = None) -> str:
    """Human-readable time left until `due`, e.g. "2d 5h 13m".

    The days component is always shown, so the label has a fixed shape.
    """
    try:
        due_day = parse_due_date(due)
    except ValueError:
        return INVALID_DUE_DATE
    if due_day is None:
        return NO_DUE_DATE

    now = now or datetime.now()
    deadline = due_instant(due_day)
    if deadline < now:
        return EXPIRED

    delta_ms = (deadline - now) // timedelta(milliseconds=1)
    total_minutes = delta_ms // 60000
    days = total_minutes // (24 * 60)
    hours = (total_minutes % (24 * 60)) // 60
    minutes = total_minutes % 60
    return f"{days}d {hours}h {minutes}m"


def is_overdue(due, now: datetime = None) -> bool:
    """True once the due day has fully elapsed. Unset or invalid dates never are."""
    try:
        due_day = parse_due_date(due)
    except ValueError:
        return False
    if due_day is None:
        return False
    return due_instant(due_day) < (now or datetime.now())
