# rentline/routers/dashboard.py
from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..domain.notifications import is_completed, is_overdue, upcoming
from ..domain.timeline import classify
from ..schemas import DashboardSummaryOut
from ..services import timeline_service as svc
from ..services.cache import DASHBOARD_CACHE, dashboard_key
from ..services.ownership import accessible_property_ids
from .timeline import client_zone, local_today

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

UPCOMING_LIMIT = 10


def build_summary(db: Session, *, user_id: str, today: date, tz: Optional[tzinfo] = None) -> dict[str, Any]:
    events = svc.user_events(db, user_id=user_id)
    open_tasks = [e for e in events if classify(e.event_type).supports_completion and not is_completed(e)]
    window = upcoming(events, today, settings.dashboard_horizon_days, tz)
    return {
        "properties": len(accessible_property_ids(db, user_id=user_id)),
        "open_tasks": len(open_tasks),
        "overdue": sum(1 for e in open_tasks if is_overdue(e, today, tz)),
        "upcoming": svc.shape_events(db, window[:UPCOMING_LIMIT], today=today, tz=tz),
        "horizon_days": settings.dashboard_horizon_days,
        "generated_at": datetime.utcnow(),
    }


@router.get("/summary", response_model=DashboardSummaryOut)
def dashboard_summary(
    today: Optional[date] = Query(default=None),
    zone: ZoneInfo = Depends(client_zone),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """
    Cached per user, day and zone for dashboard_cache_ttl_seconds; timeline
    and agreement writes drop the entry.
    """
    d = local_today(today, zone)
    return DASHBOARD_CACHE.get_or_fetch(
        f"{dashboard_key(p.user_id)}{d.isoformat()}:{zone.key}",
        settings.dashboard_cache_ttl_seconds,
        lambda: build_summary(db, user_id=p.user_id, today=d, tz=zone),
    )
