# rentline/services/calendar_export.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from icalendar import Alarm, Calendar, Event, vRecur

from ..domain.notifications import field
from ..domain.timeline import TimelineEventRecurrence, as_day, effective_end

PRODID = "-//rentline//timeline//EN"

# RFC 5545 has no QUARTERLY frequency
_RRULE: dict[TimelineEventRecurrence, dict[str, Any]] = {
    TimelineEventRecurrence.DAILY: {"FREQ": "DAILY"},
    TimelineEventRecurrence.WEEKLY: {"FREQ": "WEEKLY"},
    TimelineEventRecurrence.MONTHLY: {"FREQ": "MONTHLY"},
    TimelineEventRecurrence.QUARTERLY: {"FREQ": "MONTHLY", "INTERVAL": 3},
    TimelineEventRecurrence.YEARLY: {"FREQ": "YEARLY"},
}


def _utc(dt: datetime) -> datetime:
    # stored datetimes are naive UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _recurrence(raw: Any) -> TimelineEventRecurrence:
    try:
        return TimelineEventRecurrence(str(raw or "none").lower())
    except ValueError:
        return TimelineEventRecurrence.NONE


def rrule_for(event: Any) -> Optional[vRecur]:
    parts = _RRULE.get(_recurrence(field(event, "recurrence_type")))
    if parts is None:
        return None
    parts = dict(parts)
    until = field(event, "recurrence_end_date")
    if until is not None:
        parts["UNTIL"] = _utc(until)
    return vRecur(parts)


def build_event(event: Any, *, stamp: datetime) -> Event:
    start: datetime = field(event, "start_date")
    end = effective_end(start, field(event, "end_date"))
    title = str(field(event, "title") or "")

    ev = Event()
    ev.add("uid", f"{field(event, 'id')}@rentline")
    ev.add("dtstamp", _utc(stamp))
    if field(event, "is_all_day", False):
        first = as_day(start)
        # DTEND is exclusive for DATE values
        ev.add("dtstart", first)
        ev.add("dtend", max(as_day(end), first) + timedelta(days=1))
    else:
        ev.add("dtstart", _utc(start))
        ev.add("dtend", _utc(end))

    ev.add("summary", title)
    desc = field(event, "description")
    if desc:
        ev.add("description", str(desc))
    ev.add("categories", str(field(event, "event_type") or "custom"))

    rule = rrule_for(event)
    if rule is not None:
        ev.add("rrule", rule)
    if field(event, "is_completed", False):
        ev.add("status", "COMPLETED")

    lead = field(event, "notification_days_before")
    if lead is not None and int(lead) > 0:
        alarm = Alarm()
        alarm.add("action", "DISPLAY")
        alarm.add("trigger", timedelta(days=-int(lead)))
        alarm.add("description", title or "Reminder")
        ev.add_component(alarm)
    return ev


def render_calendar(events: Iterable[Any], *, name: str = "Rentline timeline", now: Optional[datetime] = None) -> str:
    stamp = now or datetime.utcnow()
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", name)
    for e in events:
        cal.add_component(build_event(e, stamp=stamp))
    return cal.to_ical().decode("utf-8")
