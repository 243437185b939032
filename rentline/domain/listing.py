# rentline/domain/listing.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, tzinfo
from typing import Any, Iterable, Optional

from .notifications import event_day, field, is_completed, sort_events
from .timeline import parse_event_type, require_event_type

ALL = "all"
STATUS_UPCOMING = "upcoming"
STATUS_PAST = "past"

DEFAULT_PAGE_SIZE = 12


@dataclass(frozen=True)
class ListCriteria:
    status_tab: str = STATUS_UPCOMING
    event_type: str = ALL
    property_id: str = ALL
    search_query: str = ""

    def __post_init__(self) -> None:
        if self.status_tab not in (STATUS_UPCOMING, STATUS_PAST):
            raise ValueError(f"status_tab must be '{STATUS_UPCOMING}' or '{STATUS_PAST}'")


def _status_ok(e: Any, tab: str, today: date, tz: Optional[tzinfo] = None) -> bool:
    d = event_day(e, tz)
    if tab == STATUS_UPCOMING:
        return not is_completed(e) and d >= today
    return is_completed(e) or d < today


def _matches_text(e: Any, needle: str) -> bool:
    for name in ("title", "description", "property_name"):
        v = field(e, name)
        if v and needle in str(v).lower():
            return True
    return False


def filter_events(
    events: Iterable[Any], criteria: ListCriteria, today: date, tz: Optional[tzinfo] = None
) -> list[Any]:
    """
    Status, type, property and text predicates, all applied together.
    Result is sorted ascending for the upcoming tab and descending for past.
    An unknown event_type filter is a ValidationError, never a silent match.
    """
    wanted_type = None if criteria.event_type == ALL else require_event_type(criteria.event_type)
    needle = (criteria.search_query or "").strip().lower()

    out = []
    for e in events:
        if not _status_ok(e, criteria.status_tab, today, tz):
            continue
        if wanted_type is not None and parse_event_type(field(e, "event_type")) != wanted_type:
            continue
        if criteria.property_id != ALL and str(field(e, "property_id")) != str(criteria.property_id):
            continue
        if needle and not _matches_text(e, needle):
            continue
        out.append(e)

    return sort_events(out, descending=criteria.status_tab == STATUS_PAST)


@dataclass(frozen=True)
class Page:
    items: list[Any]
    total: int
    visible_count: int

    @property
    def has_more(self) -> bool:
        return self.visible_count < self.total


def compose_page(
    events: Iterable[Any], criteria: ListCriteria, today: date, visible_count: int, tz: Optional[tzinfo] = None
) -> Page:
    matched = filter_events(events, criteria, today, tz)
    n = max(0, int(visible_count))
    return Page(items=matched[:n], total=len(matched), visible_count=n)


class ListingState:
    """
    Criteria plus how many rows are on screen.

    Any criteria change drops back to a single page; load_more (button or
    scroll-proximity trigger) grows it by one page.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE, criteria: ListCriteria | None = None) -> None:
        if int(page_size) <= 0:
            raise ValueError("page_size must be positive")
        self.page_size = int(page_size)
        self.criteria = criteria or ListCriteria()
        self.visible_count = self.page_size

    def update(self, **changes: Any) -> ListCriteria:
        new = replace(self.criteria, **changes)
        if new != self.criteria:
            self.criteria = new
            self.visible_count = self.page_size
        return self.criteria

    def load_more(self) -> int:
        self.visible_count += self.page_size
        return self.visible_count

    def page(self, events: Iterable[Any], today: date, tz: Optional[tzinfo] = None) -> Page:
        return compose_page(events, self.criteria, today, self.visible_count, tz)
