# rentline/domain/timeline_sync.py
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from .timeline import TimelineEventRecurrence as Rec
from .timeline import TimelineEventType as T

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£"}
DEFAULT_CURRENCY = "GBP"

# lead times (days) for generated events
LEASE_START_LEAD = 7
LEASE_END_LEAD = 30
RENT_DUE_LEAD = 3
INSPECTION_LEAD = 14
MAINTENANCE_LEAD = 7
TAX_LEAD = 30
INSURANCE_LEAD = 30


@dataclass(frozen=True)
class SyncOptions:
    auto_generate_lease_events: bool = True
    auto_generate_rent_due_dates: bool = True
    rent_due_day: Optional[int] = None
    upfront_rent_paid: int = 0
    include_inspections: bool = False
    inspection_frequency: str = "annual"  # annual|biannual|quarterly
    include_maintenance_reminders: bool = False
    include_property_taxes: bool = False
    include_insurance: bool = False
    start_date: Optional[date] = None
    clear_all_events: bool = False


@dataclass(frozen=True)
class PropertyFacts:
    id: str
    name: str
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    rent_amount: Optional[float] = None
    rent_due_day: Optional[int] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class EventDraft:
    event_type: T
    title: str
    description: str
    start_date: date
    notification_days_before: Optional[int]
    recurrence_type: Rec = Rec.NONE
    is_all_day: bool = True
    is_completed: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    # scheduled relative to the sync day, so matched on title instead of date
    anchored_on_today: bool = False

    @property
    def start_datetime(self) -> datetime:
        return datetime(self.start_date.year, self.start_date.month, self.start_date.day)

    @property
    def dedupe_key(self) -> tuple[str, Any]:
        if self.anchored_on_today:
            return (self.event_type.value, self.title)
        return (self.event_type.value, self.start_datetime)


def add_months(d: date, months: int, *, day: Optional[int] = None) -> date:
    """Calendar month arithmetic, clamping to the last day of short months."""
    idx = d.month - 1 + int(months)
    y, m = d.year + idx // 12, idx % 12 + 1
    last = calendar.monthrange(y, m)[1]
    return date(y, m, min(day if day is not None else d.day, last))


def shift_lease(facts: PropertyFacts, new_start: Optional[date]) -> PropertyFacts:
    """Move the lease to new_start, keeping its length."""
    if new_start is None or facts.lease_start_date is None:
        return facts
    new_end = facts.lease_end_date
    if new_end is not None:
        new_end = new_start + (new_end - facts.lease_start_date)
    return PropertyFacts(
        id=facts.id,
        name=facts.name,
        lease_start_date=new_start,
        lease_end_date=new_end,
        rent_amount=facts.rent_amount,
        rent_due_day=facts.rent_due_day,
        currency=facts.currency,
    )


def lease_events(facts: PropertyFacts, today: date) -> list[EventDraft]:
    if facts.lease_start_date is None or facts.lease_end_date is None:
        return []
    s, e = facts.lease_start_date, facts.lease_end_date
    return [
        EventDraft(
            event_type=T.LEASE_START,
            title="Lease Start Date",
            description=f"The lease for {facts.name} begins today.",
            start_date=s,
            notification_days_before=LEASE_START_LEAD,
            is_completed=s < today,
        ),
        EventDraft(
            event_type=T.LEASE_END,
            title="Lease End Date",
            description=f"The lease for {facts.name} ends today.",
            start_date=e,
            notification_days_before=LEASE_END_LEAD,
            is_completed=e < today,
        ),
    ]


def rent_due_dates(facts: PropertyFacts, *, rent_due_day: Optional[int] = None, upfront_rent_paid: int = 0) -> list[date]:
    """
    Monthly due dates from the first due day on/after lease start until lease
    end (lease start + 12 months when open-ended), skipping prepaid months.
    """
    start = facts.lease_start_date
    if start is None:
        return []
    end = facts.lease_end_date or add_months(start, 12)

    due_day = int(rent_due_day or facts.rent_due_day or 1)
    if not 1 <= due_day <= 31:
        raise ValueError("rent_due_day must be between 1 and 31")

    current = add_months(start, 0, day=due_day)
    if start.day > due_day:
        current = add_months(current, 1, day=due_day)
    current = add_months(current, max(0, int(upfront_rent_paid)), day=due_day)

    out: list[date] = []
    while current <= end:
        out.append(current)
        current = add_months(current, 1, day=due_day)
    return out


def rent_events(facts: PropertyFacts, options: SyncOptions) -> list[EventDraft]:
    if facts.lease_start_date is None or not facts.rent_amount:
        return []
    currency = (facts.currency or DEFAULT_CURRENCY).upper()
    symbol = CURRENCY_SYMBOLS.get(currency, "£")
    return [
        EventDraft(
            event_type=T.RENT_DUE,
            title="Rent Payment Due",
            description=f"Monthly rent payment of {symbol}{facts.rent_amount:g} is due today.",
            start_date=d,
            notification_days_before=RENT_DUE_LEAD,
            metadata={"amount": facts.rent_amount, "currency": currency},
        )
        for d in rent_due_dates(facts, rent_due_day=options.rent_due_day, upfront_rent_paid=options.upfront_rent_paid)
    ]


def inspection_events(facts: PropertyFacts, today: date, frequency: str) -> list[EventDraft]:
    label = facts.name or "your property"
    freq = (frequency or "annual").strip().lower()

    if freq == "quarterly":
        return [
            EventDraft(
                event_type=T.INSPECTION,
                title="Quarterly Property Inspection",
                description=f"Schedule an inspection for {label}",
                start_date=add_months(today, 3),
                notification_days_before=INSPECTION_LEAD,
                anchored_on_today=True,
                recurrence_type=Rec.QUARTERLY,
            )
        ]

    if freq == "biannual":
        # no half-yearly recurrence; two one-off events instead
        return [
            EventDraft(
                event_type=T.INSPECTION,
                title="Semi-Annual Property Inspection",
                description=f"Schedule an inspection for {label}",
                start_date=add_months(today, n),
                notification_days_before=INSPECTION_LEAD,
                anchored_on_today=True,
            )
            for n in (6, 12)
        ]

    return [
        EventDraft(
            event_type=T.INSPECTION,
            title="Annual Property Inspection",
            description=f"Schedule an inspection for {label}",
            start_date=add_months(today, 12),
            notification_days_before=INSPECTION_LEAD,
            anchored_on_today=True,
            recurrence_type=Rec.YEARLY,
        )
    ]


def maintenance_events(facts: PropertyFacts, today: date) -> list[EventDraft]:
    label = facts.name or "your property"
    return [
        EventDraft(
            event_type=T.MAINTENANCE,
            title="Quarterly Maintenance Check",
            description=f"Schedule regular maintenance for {label}",
            start_date=add_months(today, 3 * (i + 1)),
            notification_days_before=MAINTENANCE_LEAD,
            anchored_on_today=True,
        )
        for i in range(4)
    ]


def property_tax_event(facts: PropertyFacts, today: date) -> EventDraft:
    due = date(today.year, 4, 15)
    if today > due:
        due = date(today.year + 1, 4, 15)
    return EventDraft(
        event_type=T.CUSTOM,
        title="Property Tax Due",
        description=f"Property tax payment due for {facts.name or 'your property'}",
        start_date=due,
        notification_days_before=TAX_LEAD,
        anchored_on_today=True,
        recurrence_type=Rec.YEARLY,
    )


def insurance_event(facts: PropertyFacts, today: date) -> EventDraft:
    return EventDraft(
        event_type=T.CUSTOM,
        title="Insurance Renewal",
        description=f"Renew insurance for {facts.name or 'your property'}",
        start_date=add_months(today, 12),
        notification_days_before=INSURANCE_LEAD,
        anchored_on_today=True,
        recurrence_type=Rec.YEARLY,
    )


def plan_property_events(facts: PropertyFacts, options: SyncOptions, today: date) -> list[EventDraft]:
    """Everything a sync would create, before de-duplication against the store."""
    facts = shift_lease(facts, options.start_date)

    drafts: list[EventDraft] = []
    if options.auto_generate_lease_events:
        drafts.extend(lease_events(facts, today))
    if options.auto_generate_rent_due_dates:
        drafts.extend(rent_events(facts, options))
    if options.include_inspections:
        drafts.extend(inspection_events(facts, today, options.inspection_frequency))
    if options.include_maintenance_reminders:
        drafts.extend(maintenance_events(facts, today))
    if options.include_property_taxes:
        drafts.append(property_tax_event(facts, today))
    if options.include_insurance:
        drafts.append(insurance_event(facts, today))
    return drafts
