# rentline/domain/timeline.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ValidationError


class TimelineEventType(str, Enum):
    LEASE_START = "lease_start"
    LEASE_END = "lease_end"
    RENT_DUE = "rent_due"
    INSPECTION = "inspection"
    MAINTENANCE = "maintenance"
    CUSTOM = "custom"
    # agreement due-date marker; never completable
    AGREEMENT = "agreement"
    # a check item mirrored onto the assignee's timeline
    AGREEMENT_TASK = "agreement_task"


class TimelineEventRecurrence(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


# legacy spellings still sent by older clients
_TYPE_ALIASES = {"other": TimelineEventType.CUSTOM}

DEFAULT_EVENT_DURATION = timedelta(hours=1)


@dataclass(frozen=True)
class EventClassification:
    event_type: TimelineEventType
    icon_kind: str
    supports_completion: bool


_ICONS: dict[TimelineEventType, str] = {
    TimelineEventType.LEASE_START: "key",
    TimelineEventType.LEASE_END: "door",
    TimelineEventType.RENT_DUE: "currency",
    TimelineEventType.INSPECTION: "clipboard",
    TimelineEventType.MAINTENANCE: "wrench",
    TimelineEventType.CUSTOM: "calendar",
    TimelineEventType.AGREEMENT: "document",
    TimelineEventType.AGREEMENT_TASK: "checklist",
}

_NOT_COMPLETABLE = frozenset({TimelineEventType.AGREEMENT})


def parse_event_type(raw: Any) -> TimelineEventType:
    """
    Lenient parse: case-insensitive, legacy aliases honoured, anything
    unrecognised falls back to CUSTOM.
    """
    if isinstance(raw, TimelineEventType):
        return raw
    s = str(raw or "").strip().lower()
    if s in _TYPE_ALIASES:
        return _TYPE_ALIASES[s]
    try:
        return TimelineEventType(s)
    except ValueError:
        return TimelineEventType.CUSTOM


def require_event_type(raw: Any) -> TimelineEventType:
    """Strict parse for filters: aliases are honoured, unknown names are rejected."""
    if isinstance(raw, TimelineEventType):
        return raw
    s = str(raw or "").strip().lower()
    if s in _TYPE_ALIASES:
        return _TYPE_ALIASES[s]
    try:
        return TimelineEventType(s)
    except ValueError as e:
        raise ValidationError(f"unknown event_type: {raw}") from e


def classify(event_type: Any) -> EventClassification:
    t = parse_event_type(event_type)
    return EventClassification(
        event_type=t,
        icon_kind=_ICONS[t],
        supports_completion=t not in _NOT_COMPLETABLE,
    )


def to_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


def parse_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(str(name).strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"unknown time zone: {name}") from e


def local_day(v: Any, tz: Optional[tzinfo] = None) -> date:
    """
    Calendar day of a stored instant as seen from tz. Naive datetimes are
    UTC; without tz this is as_day.
    """
    if tz is not None and isinstance(v, datetime):
        aware = v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)
        return aware.astimezone(tz).date()
    return as_day(v)


def as_day(v: Any) -> date:
    """Date-only component; time-of-day is discarded."""
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    s = str(v)
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        return date.fromisoformat(s[:10])


def effective_end(start_date: datetime, end_date: Optional[datetime]) -> datetime:
    return end_date if end_date is not None else start_date + DEFAULT_EVENT_DURATION


def validate_event_fields(
    *,
    title: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime] = None,
    recurrence_end_date: Optional[datetime] = None,
    notification_days_before: Optional[int] = None,
) -> None:
    if not (title or "").strip():
        raise ValidationError("title is required")
    if start_date is None:
        raise ValidationError("start_date is required")
    if end_date is not None and end_date < start_date:
        raise ValidationError("end_date cannot be before start_date")
    if recurrence_end_date is not None and recurrence_end_date < start_date:
        raise ValidationError("recurrence_end_date cannot be before start_date")
    if notification_days_before is not None and int(notification_days_before) < 0:
        raise ValidationError("notification_days_before must be >= 0")
