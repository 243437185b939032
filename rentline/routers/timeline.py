# rentline/routers/timeline.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..domain.listing import ALL, ListCriteria
from ..domain.notifications import group_by_day
from ..domain.timeline import parse_zone
from ..domain.timeline_sync import SyncOptions
from ..schemas import (
    TaskAssign,
    TimelineEventCreate,
    TimelineEventList,
    TimelineEventOut,
    TimelineEventUpdate,
    TimelinePageOut,
    TimelineSyncIn,
    TimelineSyncOut,
    UpcomingEventsOut,
)
from ..services import timeline_service as svc
from ..services.calendar_export import render_calendar

router = APIRouter(prefix="/timeline", tags=["timeline"])


def client_zone(tz: Optional[str] = Query(default=None, max_length=64)) -> ZoneInfo:
    """IANA zone the client reads days in, e.g. ?tz=America/Chicago."""
    return parse_zone(tz or settings.default_timezone)


def local_today(today: Optional[date], zone: ZoneInfo) -> date:
    # clients send their local day; otherwise it is today in their zone
    return today or datetime.now(zone).date()


@router.get("/properties/{property_id}/events", response_model=TimelineEventList)
def property_events(
    property_id: str,
    today: Optional[date] = Query(default=None),
    zone: ZoneInfo = Depends(client_zone),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    rows = svc.list_property_events(db, user_id=p.user_id, property_id=property_id)
    return {"status": "success", "data": svc.shape_events(db, rows, today=local_today(today, zone), tz=zone)}


@router.get("/upcoming", response_model=UpcomingEventsOut)
def upcoming_events(
    days: Optional[int] = Query(default=None, ge=1, le=366),
    today: Optional[date] = Query(default=None),
    zone: ZoneInfo = Depends(client_zone),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """
    Notification bell feed: the horizon window plus anything overdue and still
    open. Days are read in the client's zone (?tz=, default UTC).
    """
    d = local_today(today, zone)
    horizon = int(days or settings.upcoming_default_days)
    rows = svc.upcoming_events(db, user_id=p.user_id, today=d, days=horizon, tz=zone)
    return {
        "status": "success",
        "days": horizon,
        "data": svc.shape_events(db, rows, today=d, tz=zone),
        "groups": [{"day": day, "event_ids": [e.id for e in items]} for day, items in group_by_day(rows, zone)],
    }


@router.get("/reminders", response_model=TimelineEventList)
def reminder_events(
    today: Optional[date] = Query(default=None),
    zone: ZoneInfo = Depends(client_zone),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    d = local_today(today, zone)
    rows = svc.reminder_events(db, user_id=p.user_id, today=d, tz=zone)
    return {"status": "success", "data": svc.shape_events(db, rows, today=d, tz=zone)}


@router.get("/all", response_model=TimelinePageOut)
def all_events(
    status_tab: str = Query(default="upcoming", pattern="^(upcoming|past)$"),
    event_type: str = Query(default=ALL),
    property_id: str = Query(default=ALL),
    q: str = Query(default=""),
    visible_count: Optional[int] = Query(default=None, ge=0),
    today: Optional[date] = Query(default=None),
    zone: ZoneInfo = Depends(client_zone),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    criteria = ListCriteria(status_tab=status_tab, event_type=event_type, property_id=property_id, search_query=q)
    count = settings.list_page_size if visible_count is None else visible_count
    page = svc.all_events_page(
        db, user_id=p.user_id, criteria=criteria, visible_count=count, today=local_today(today, zone), tz=zone
    )
    return {
        "status": "success",
        "data": page.items,
        "total": page.total,
        "visible_count": page.visible_count,
        "has_more": page.has_more,
    }


@router.get("/calendar.ics")
def calendar_export(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    rows = svc.user_events(db, user_id=p.user_id)
    body = render_calendar(rows)
    return Response(
        content=body,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="rentline.ics"'},
    )


@router.post("/events", response_model=TimelineEventOut, status_code=201)
def create_event(payload: TimelineEventCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = svc.create_event(db, user_id=p.user_id, payload=payload)
    return svc.shape_events(db, [row])[0]


@router.put("/events/{event_id}", response_model=TimelineEventOut)
def update_event(
    event_id: str,
    payload: TimelineEventUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.update_event(db, user_id=p.user_id, event_id=event_id, payload=payload)
    return svc.shape_events(db, [row])[0]


@router.delete("/events/{event_id}", response_model=dict)
def delete_event(event_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    svc.delete_event(db, user_id=p.user_id, event_id=event_id)
    return {"ok": True}


@router.post("/events/{event_id}/assign", response_model=TimelineEventOut)
def assign_event(
    event_id: str,
    payload: TaskAssign,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """userId null (or omitted) unassigns."""
    row = svc.assign_event(
        db,
        user_id=p.user_id,
        event_id=event_id,
        target=payload.user_id,
        notification_days_before=payload.notification_days_before,
    )
    return svc.shape_events(db, [row])[0]


@router.post("/events/{event_id}/toggle-complete", response_model=TimelineEventOut)
def toggle_complete(event_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = svc.toggle_event_complete(db, user_id=p.user_id, event_id=event_id)
    return svc.shape_events(db, [row])[0]


@router.post("/properties/{property_id}/sync", response_model=TimelineSyncOut)
def sync_property(
    property_id: str,
    payload: TimelineSyncIn,
    today: Optional[date] = Query(default=None),
    zone: ZoneInfo = Depends(client_zone),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    options = SyncOptions(**payload.model_dump())
    res = svc.sync_property_events(
        db, user_id=p.user_id, property_id=property_id, options=options, today=local_today(today, zone)
    )
    return {"ok": True, **res}
