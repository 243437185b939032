# tests/test_upcoming_window.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from rentline.domain.notifications import (
    OVERDUE,
    TODAY,
    TOMORROW,
    group_by_day,
    relative_label,
    reminder_due,
    reminders,
    upcoming,
)

TODAY_D = date(2026, 3, 10)


def _ev(eid: str, day: date, *, hour: int = 9, completed: bool = False, lead=None) -> dict:
    return {
        "id": eid,
        "start_date": datetime(day.year, day.month, day.day, hour),
        "is_completed": completed,
        "notification_days_before": lead,
    }


def test_horizon_filter_keeps_today_and_plus_five_only():
    events = [
        _ev("far", TODAY_D + timedelta(days=40)),
        _ev("soon", TODAY_D + timedelta(days=5)),
        _ev("now", TODAY_D),
    ]
    out = upcoming(events, TODAY_D, 30)
    assert [e["id"] for e in out] == ["now", "soon"]


def test_horizon_edge_is_inclusive():
    events = [_ev("edge", TODAY_D + timedelta(days=30)), _ev("past_edge", TODAY_D + timedelta(days=31))]
    assert [e["id"] for e in upcoming(events, TODAY_D, 30)] == ["edge"]


def test_overdue_open_events_lead_and_completed_ones_drop_out():
    events = [
        _ev("future", TODAY_D + timedelta(days=2)),
        _ev("late_open", TODAY_D - timedelta(days=3)),
        _ev("late_done", TODAY_D - timedelta(days=1), completed=True),
    ]
    out = upcoming(events, TODAY_D, 30)
    assert [e["id"] for e in out] == ["late_open", "future"]
    assert relative_label(out[0], TODAY_D) == OVERDUE


def test_horizon_must_be_positive():
    with pytest.raises(ValueError):
        upcoming([], TODAY_D, 0)


def test_labels_use_calendar_days_not_hours():
    assert relative_label(_ev("a", TODAY_D, hour=23), TODAY_D) == TODAY
    assert relative_label(_ev("b", TODAY_D + timedelta(days=1), hour=0), TODAY_D) == TOMORROW
    assert relative_label(_ev("c", TODAY_D + timedelta(days=4)), TODAY_D) == "In 4 days"
    assert relative_label(_ev("d", TODAY_D - timedelta(days=1), hour=23), TODAY_D) == OVERDUE


def test_group_by_day_is_chronological():
    events = [
        _ev("b2", TODAY_D + timedelta(days=1), hour=15),
        _ev("a", TODAY_D),
        _ev("b1", TODAY_D + timedelta(days=1), hour=8),
    ]
    groups = group_by_day(events)
    assert [d for d, _ in groups] == [TODAY_D, TODAY_D + timedelta(days=1)]
    assert [e["id"] for e in groups[1][1]] == ["b1", "b2"]


def test_reminder_window_follows_lead_time():
    in_window = _ev("rent", TODAY_D + timedelta(days=3), lead=3)
    too_early = _ev("lease", TODAY_D + timedelta(days=10), lead=7)
    no_lead = _ev("plain", TODAY_D + timedelta(days=1))
    same_day = _ev("today", TODAY_D)
    done = _ev("done", TODAY_D + timedelta(days=1), lead=5, completed=True)

    assert reminder_due(in_window, TODAY_D)
    assert not reminder_due(too_early, TODAY_D)
    assert not reminder_due(no_lead, TODAY_D)
    assert reminder_due(same_day, TODAY_D)
    assert not reminder_due(done, TODAY_D)

    out = reminders([too_early, in_window, no_lead, same_day, done], TODAY_D)
    assert [e["id"] for e in out] == ["today", "rent"]


def test_past_markers_that_cannot_be_completed_are_not_overdue():
    marker = {**_ev("m", TODAY_D - timedelta(days=30)), "event_type": "agreement"}
    task = {**_ev("t", TODAY_D - timedelta(days=30)), "event_type": "agreement_task"}
    assert [e["id"] for e in upcoming([marker, task], TODAY_D, 30)] == ["t"]

    in_window = {**marker, "start_date": datetime(2026, 3, 12, 9)}
    assert upcoming([in_window], TODAY_D, 30) == [in_window]


def test_days_are_read_in_the_client_zone():
    chicago = ZoneInfo("America/Chicago")
    # stored naive UTC: 2026-03-11 03:00Z is 22:00 on the 10th in Chicago (CDT)
    late = {"id": "late", "start_date": datetime(2026, 3, 11, 3), "is_completed": False}
    assert relative_label(late, TODAY_D) == TOMORROW
    assert relative_label(late, TODAY_D, chicago) == TODAY
    assert [d for d, _ in group_by_day([late], chicago)] == [TODAY_D]

    # all-day events keep their own date whatever the zone
    all_day = {"id": "a", "start_date": datetime(2026, 3, 11), "is_all_day": True, "is_completed": False}
    assert relative_label(all_day, TODAY_D, chicago) == TOMORROW
