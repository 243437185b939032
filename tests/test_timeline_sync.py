# tests/test_timeline_sync.py
from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from rentline.db import SessionLocal
from rentline.domain.timeline import TimelineEventRecurrence, TimelineEventType
from rentline.domain.timeline_sync import (
    PropertyFacts,
    SyncOptions,
    add_months,
    inspection_events,
    plan_property_events,
    property_tax_event,
    rent_due_dates,
)
from rentline.main import create_app
from rentline.models import Property, TimelineEvent

TODAY = date(2026, 3, 10)

FACTS = PropertyFacts(
    id="p1",
    name="Maple House",
    lease_start_date=date(2026, 1, 15),
    lease_end_date=date(2026, 6, 14),
    rent_amount=1250.0,
    rent_due_day=1,
    currency="GBP",
)


def _headers(uid: str = "owner-1") -> dict:
    return {"X-User-Id": uid, "X-User-Email": f"{uid}@example.com"}


def test_add_months_clamps_short_months():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)
    assert add_months(date(2026, 1, 10), 1, day=31) == date(2026, 2, 28)


def test_rent_dates_start_after_lease_start_and_skip_prepaid():
    assert rent_due_dates(FACTS) == [date(2026, 2, 1), date(2026, 3, 1), date(2026, 4, 1), date(2026, 5, 1), date(2026, 6, 1)]
    assert rent_due_dates(FACTS, upfront_rent_paid=2)[0] == date(2026, 4, 1)


def test_rent_due_day_is_clamped_per_month():
    facts = PropertyFacts(id="p", name="x", lease_start_date=date(2026, 1, 1), lease_end_date=date(2026, 4, 30))
    assert rent_due_dates(facts, rent_due_day=31) == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]

    with pytest.raises(ValueError):
        rent_due_dates(facts, rent_due_day=32)


def test_inspection_frequencies():
    q = inspection_events(FACTS, TODAY, "quarterly")
    assert len(q) == 1 and q[0].recurrence_type == TimelineEventRecurrence.QUARTERLY

    b = inspection_events(FACTS, TODAY, "biannual")
    assert [d.start_date for d in b] == [date(2026, 9, 10), date(2027, 3, 10)]

    a = inspection_events(FACTS, TODAY, "annual")
    assert a[0].recurrence_type == TimelineEventRecurrence.YEARLY


def test_property_tax_rolls_to_next_year():
    assert property_tax_event(FACTS, TODAY).start_date == date(2026, 4, 15)
    assert property_tax_event(FACTS, date(2026, 5, 1)).start_date == date(2027, 4, 15)


def test_plan_marks_past_lease_start_completed():
    drafts = plan_property_events(FACTS, SyncOptions(), TODAY)
    by_type = {d.event_type: d for d in drafts}
    assert by_type[TimelineEventType.LEASE_START].is_completed
    assert not by_type[TimelineEventType.LEASE_END].is_completed
    assert sum(1 for d in drafts if d.event_type == TimelineEventType.RENT_DUE) == 5


def _seed_property(uid: str) -> str:
    with TestClient(create_app()) as c:
        r = c.post(
            "/api/properties",
            headers=_headers(uid),
            json={
                "name": "Maple House",
                "rent_amount": 1250,
                "rent_due_day": 1,
                "currency": "GBP",
                "lease_start_date": "2026-01-15",
                "lease_end_date": "2026-06-14",
            },
        )
        assert r.status_code == 201, r.text
        return r.json()["id"]


def test_sync_route_is_idempotent_and_can_clear():
    pid = _seed_property("owner-1")

    with TestClient(create_app()) as c:
        url = f"/api/timeline/properties/{pid}/sync?today={TODAY.isoformat()}"

        r = c.post(url, headers=_headers(), json={})
        assert r.status_code == 200, r.text
        first = r.json()
        assert first["ok"] is True
        assert first["created"] == 7
        assert first["skipped_existing"] == 0

        r = c.post(url, headers=_headers(), json={})
        again = r.json()
        assert again["created"] == 0
        assert again["skipped_existing"] == 7

        r = c.post(url, headers=_headers(), json={"clearAllEvents": True, "autoGenerateRentDueDates": False})
        cleared = r.json()
        assert cleared["cleared"] == 7
        assert cleared["created"] == 2

    db = SessionLocal()
    try:
        rows = db.query(TimelineEvent).filter(TimelineEvent.property_id == pid).all()
        assert sorted(r.event_type for r in rows) == ["lease_end", "lease_start"]
        assert db.get(Property, pid) is not None
    finally:
        db.close()


def test_resync_on_a_later_day_does_not_duplicate_scheduled_events():
    pid = _seed_property("owner-1")
    opts = {
        "autoGenerateLeaseEvents": False,
        "autoGenerateRentDueDates": False,
        "includeInspections": True,
        "includeMaintenanceReminders": True,
        "includeInsurance": True,
    }

    with TestClient(create_app()) as c:
        r = c.post(f"/api/timeline/properties/{pid}/sync?today=2026-03-10", headers=_headers(), json=opts)
        assert r.status_code == 200, r.text
        assert r.json()["created"] == 6

        r = c.post(f"/api/timeline/properties/{pid}/sync?today=2026-03-11", headers=_headers(), json=opts)
        again = r.json()
        assert again["created"] == 0
        assert again["skipped_existing"] == 6

    db = SessionLocal()
    try:
        assert db.query(TimelineEvent).filter(TimelineEvent.property_id == pid).count() == 6
    finally:
        db.close()


def test_scheduled_drafts_match_on_title():
    drafts = plan_property_events(
        FACTS, SyncOptions(include_maintenance_reminders=True, auto_generate_rent_due_dates=False), TODAY
    )
    keys = {d.dedupe_key for d in drafts if d.event_type == TimelineEventType.MAINTENANCE}
    assert keys == {("maintenance", "Quarterly Maintenance Check")}
    lease = [d for d in drafts if d.event_type == TimelineEventType.LEASE_START]
    assert lease[0].dedupe_key == ("lease_start", datetime(2026, 1, 15))


def test_sync_requires_ownership():
    pid = _seed_property("owner-1")
    with TestClient(create_app()) as c:
        r = c.post(f"/api/timeline/properties/{pid}/sync", headers=_headers("stranger"), json={})
        assert r.status_code == 404
        assert r.json()["error"] == "not_found"
