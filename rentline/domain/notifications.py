# rentline/domain/notifications.py
from __future__ import annotations

from datetime import date, timedelta, tzinfo
from itertools import groupby
from typing import Any, Iterable, Optional

from .timeline import classify, local_day

TODAY = "Today"
TOMORROW = "Tomorrow"
OVERDUE = "Overdue"


def field(event: Any, name: str, default: Any = None) -> Any:
    """Read a field off an ORM row, a schema object or a plain dict."""
    if isinstance(event, dict):
        return event.get(name, default)
    return getattr(event, name, default)


def event_day(event: Any, tz: Optional[tzinfo] = None) -> date:
    # all-day events are stored at midnight of their own day; never shift them
    if field(event, "is_all_day", False):
        tz = None
    return local_day(field(event, "start_date"), tz)


def is_completed(event: Any) -> bool:
    return bool(field(event, "is_completed", False))


def days_until(event: Any, today: date, tz: Optional[tzinfo] = None) -> int:
    # calendar-day difference, never elapsed hours
    return (event_day(event, tz) - today).days


def is_overdue(event: Any, today: date, tz: Optional[tzinfo] = None) -> bool:
    """Past, still open, and something a user could actually complete."""
    if is_completed(event) or not classify(field(event, "event_type")).supports_completion:
        return False
    return event_day(event, tz) < today


def upcoming(events: Iterable[Any], today: date, horizon_days: int, tz: Optional[tzinfo] = None) -> list[Any]:
    """
    Events a notification surface should show.

    An event is in if its day falls in [today, today + horizon_days], or it is
    overdue and still open. Days are read in tz (the client's zone) so they
    line up with today. Result is ascending by start_date, so overdue items
    lead. Recomputed from the input on every call.
    """
    if int(horizon_days) <= 0:
        raise ValueError("horizon_days must be a positive integer")

    cutoff = today + timedelta(days=int(horizon_days))
    out = []
    for e in events:
        d = event_day(e, tz)
        if today <= d <= cutoff or is_overdue(e, today, tz):
            out.append(e)
    return sort_events(out)


def sort_events(events: Iterable[Any], *, descending: bool = False) -> list[Any]:
    return sorted(events, key=lambda e: field(e, "start_date"), reverse=descending)


def relative_label(event: Any, today: date, tz: Optional[tzinfo] = None) -> str:
    n = days_until(event, today, tz)
    if n == 0:
        return TODAY
    if n == 1:
        return TOMORROW
    if n > 1:
        return f"In {n} days"
    return OVERDUE


def group_by_day(events: Iterable[Any], tz: Optional[tzinfo] = None) -> list[tuple[date, list[Any]]]:
    """Sections for display, chronological by day. Order inside a day is kept."""
    ordered = sort_events(events)
    return [(d, list(items)) for d, items in groupby(ordered, key=lambda e: event_day(e, tz))]


def reminder_due(event: Any, today: date, tz: Optional[tzinfo] = None) -> bool:
    """
    Whether a lead-time reminder should be showing today.

    Completed events never remind. Same-day events always do. Otherwise the
    window is [start - notification_days_before, start]; no lead time means no
    reminder before the day itself.
    """
    if is_completed(event):
        return False

    d = event_day(event, tz)
    if d == today:
        return True

    lead: Optional[int] = field(event, "notification_days_before")
    if lead is None:
        return False

    notify_from = d - timedelta(days=int(lead))
    return notify_from <= today <= d


def reminders(events: Iterable[Any], today: date, tz: Optional[tzinfo] = None) -> list[Any]:
    return sort_events(e for e in events if reminder_due(e, today, tz))
