# rentline/services/timeline_service.py
from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from typing import Any, Iterable, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain import assignments
from ..domain.assignments import TaskState
from ..domain.audit import audit_write
from ..domain.errors import PermissionDenied, ValidationError
from ..domain.listing import ListCriteria, Page, compose_page
from ..domain.notifications import relative_label, reminders, upcoming
from ..domain.timeline import (
    TimelineEventType,
    classify,
    parse_event_type,
    validate_event_fields,
)
from ..domain.timeline_sync import EventDraft, PropertyFacts, SyncOptions, plan_property_events
from ..models import Agreement, Property, PropertyUser, TimelineEvent
from ..schemas import TimelineEventCreate, TimelineEventOut, TimelineEventUpdate
from .cache import DASHBOARD_CACHE, dashboard_key
from .ownership import (
    accessible_property_ids,
    is_property_owner,
    must_get_event,
    must_get_property,
    must_know_user,
    must_own_property,
)
from .usage_service import FEATURE_TIMELINE_SYNC, enforce_feature_limit, record_usage

log = logging.getLogger(__name__)

MANAGED_TYPES = frozenset({TimelineEventType.AGREEMENT, TimelineEventType.AGREEMENT_TASK})


# -----------------------------
# Shaping
# -----------------------------
def event_out(
    e: TimelineEvent,
    *,
    today: Optional[date] = None,
    property_name: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> dict[str, Any]:
    c = classify(e.event_type)
    out = TimelineEventOut.model_validate(e).model_dump()
    out["event_type"] = c.event_type.value
    out["icon_kind"] = c.icon_kind
    out["supports_completion"] = c.supports_completion
    out["property_name"] = property_name
    if today is not None:
        out["label"] = relative_label(e, today, tz)
    return out


def property_names(db: Session, property_ids: Iterable[str]) -> dict[str, str]:
    ids = sorted({str(x) for x in property_ids})
    if not ids:
        return {}
    rows = db.execute(select(Property.id, Property.name).where(Property.id.in_(ids))).all()
    return {str(pid): str(name) for pid, name in rows}


def shape_events(
    db: Session, events: list[TimelineEvent], *, today: Optional[date] = None, tz: Optional[tzinfo] = None
) -> list[dict[str, Any]]:
    names = property_names(db, (e.property_id for e in events))
    return [event_out(e, today=today, property_name=names.get(e.property_id), tz=tz) for e in events]


# -----------------------------
# Cache + audit plumbing
# -----------------------------
def invalidate_dashboards(db: Session, property_id: str, *extra_user_ids: Optional[str]) -> None:
    users: set[str] = {u for u in extra_user_ids if u}
    prop = db.get(Property, property_id)
    if prop is not None:
        users.add(prop.created_by)
    users.update(db.scalars(select(PropertyUser.user_id).where(PropertyUser.property_id == property_id)).all())
    for uid in users:
        DASHBOARD_CACHE.invalidate_prefix(dashboard_key(uid))


def is_event_creator(db: Session, e: TimelineEvent, *, user_id: str) -> bool:
    if e.user_id == user_id:
        return True
    prop = db.get(Property, e.property_id)
    return prop is not None and is_property_owner(db, prop, user_id=user_id)


def _state_of(e: TimelineEvent) -> TaskState:
    meta = e.meta
    completed_at = meta.get("completed_at")
    return TaskState(
        assigned_to=e.assigned_to,
        notification_days_before=e.notification_days_before,
        completed=bool(e.is_completed),
        completed_by=meta.get("completed_by"),
        completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
    )


def _apply_state(e: TimelineEvent, state: TaskState) -> None:
    e.assigned_to = state.assigned_to
    e.notification_days_before = state.notification_days_before
    e.is_completed = state.completed
    meta = e.meta
    meta["completed_by"] = state.completed_by
    meta["completed_at"] = state.completed_at.isoformat() if state.completed_at else None
    e.meta = meta


# -----------------------------
# Reads
# -----------------------------
def list_property_events(db: Session, *, user_id: str, property_id: str) -> list[TimelineEvent]:
    must_get_property(db, user_id=user_id, property_id=property_id)
    return list(
        db.scalars(
            select(TimelineEvent)
            .where(TimelineEvent.property_id == str(property_id))
            .order_by(TimelineEvent.start_date.asc())
        ).all()
    )


def user_events(db: Session, *, user_id: str) -> list[TimelineEvent]:
    """Every event the user can see: their properties' events plus anything assigned to them."""
    pids = accessible_property_ids(db, user_id=user_id)
    conds = [TimelineEvent.assigned_to == user_id, TimelineEvent.user_id == user_id]
    if pids:
        conds.append(TimelineEvent.property_id.in_(pids))
    return list(db.scalars(select(TimelineEvent).where(or_(*conds)).order_by(TimelineEvent.start_date.asc())).all())


def upcoming_events(
    db: Session, *, user_id: str, today: date, days: int, tz: Optional[tzinfo] = None
) -> list[TimelineEvent]:
    return upcoming(user_events(db, user_id=user_id), today, days, tz)


def reminder_events(db: Session, *, user_id: str, today: date, tz: Optional[tzinfo] = None) -> list[TimelineEvent]:
    return reminders(user_events(db, user_id=user_id), today, tz)


def all_events_page(
    db: Session,
    *,
    user_id: str,
    criteria: ListCriteria,
    visible_count: int,
    today: date,
    tz: Optional[tzinfo] = None,
) -> Page:
    events = user_events(db, user_id=user_id)
    names = property_names(db, (e.property_id for e in events))
    # search needs property_name, which lives on the property row
    shaped = [event_out(e, property_name=names.get(e.property_id)) for e in events]
    return compose_page(shaped, criteria, today, visible_count, tz)


# -----------------------------
# Writes
# -----------------------------
def create_event(db: Session, *, user_id: str, payload: TimelineEventCreate) -> TimelineEvent:
    prop = must_get_property(db, user_id=user_id, property_id=payload.property_id)
    if payload.event_type in MANAGED_TYPES:
        raise ValidationError("agreement events are created from agreements")

    validate_event_fields(
        title=payload.title,
        start_date=payload.start_date,
        end_date=payload.end_date,
        recurrence_end_date=payload.recurrence_end_date,
        notification_days_before=payload.notification_days_before,
    )

    now = datetime.utcnow()
    row = TimelineEvent(
        property_id=prop.id,
        user_id=user_id,
        title=payload.title.strip(),
        description=payload.description,
        event_type=payload.event_type.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_all_day=bool(payload.is_all_day),
        recurrence_type=payload.recurrence_type.value,
        recurrence_end_date=payload.recurrence_end_date,
        notification_days_before=payload.notification_days_before,
        is_completed=False,
        created_at=now,
        updated_at=now,
    )
    row.meta = payload.metadata
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=user_id,
        action="timeline_event.create",
        entity_type="timeline_event",
        entity_id=row.id,
        property_id=prop.id,
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)

    invalidate_dashboards(db, prop.id, user_id)
    log.info("timeline event created", extra={"user_id": user_id, "property_id": prop.id, "event_id": row.id})
    return row


def write_back_check_item(db: Session, e: TimelineEvent, *, user_id: str, completed: bool, now: datetime) -> None:
    """Completion of a mirrored agreement task lands on its check item too."""
    meta = e.meta
    ag = db.get(Agreement, str(meta.get("agreement_id") or ""))
    if ag is None:
        return
    items = ag.check_items
    idx = next((i for i, it in enumerate(items) if it.get("event_id") == e.id), None)
    if idx is None:
        return

    it = items[idx]
    completed_at = it.get("completed_at")
    state = TaskState(
        assigned_to=it.get("assigned_to"),
        notification_days_before=it.get("notification_days_before"),
        completed=bool(it.get("checked")),
        completed_by=it.get("completed_by"),
        completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
    )
    new = assignments.set_completion(
        state,
        requester=user_id,
        is_creator=ag.created_by == user_id,
        completed=completed,
        now=now,
        clear_on_reopen=settings.clear_completion_on_reopen,
    )
    it.update(
        checked=new.completed,
        completed_by=new.completed_by,
        completed_at=new.completed_at.isoformat() if new.completed_at else None,
    )
    ag.check_items = items
    ag.updated_at = now


def _set_event_completion(db: Session, e: TimelineEvent, *, user_id: str, completed: bool, now: datetime) -> None:
    if not classify(e.event_type).supports_completion:
        raise ValidationError("this event type cannot be completed")

    new = assignments.set_completion(
        _state_of(e),
        requester=user_id,
        is_creator=is_event_creator(db, e, user_id=user_id),
        completed=completed,
        now=now,
        clear_on_reopen=settings.clear_completion_on_reopen,
    )
    if parse_event_type(e.event_type) == TimelineEventType.AGREEMENT_TASK:
        write_back_check_item(db, e, user_id=user_id, completed=completed, now=now)
    _apply_state(e, new)


def update_event(
    db: Session, *, user_id: str, event_id: str, payload: TimelineEventUpdate, now: Optional[datetime] = None
) -> TimelineEvent:
    now = now or datetime.utcnow()
    e = must_get_event(db, user_id=user_id, event_id=event_id)
    before = e.model_dump()

    sent = payload.model_fields_set
    edits = sent - {"is_completed"}
    if edits and not is_event_creator(db, e, user_id=user_id):
        raise PermissionDenied("Only the event creator can edit this event")
    if "event_type" in edits and payload.event_type in MANAGED_TYPES and parse_event_type(e.event_type) != payload.event_type:
        raise ValidationError("agreement events are created from agreements")

    merged = {k: getattr(e, k) for k in ("title", "start_date", "end_date", "recurrence_end_date", "notification_days_before")}
    for k in merged:
        if k in edits:
            merged[k] = getattr(payload, k)
    validate_event_fields(**merged)

    for k in ("title", "description", "start_date", "end_date", "recurrence_end_date", "notification_days_before"):
        if k in edits:
            setattr(e, k, getattr(payload, k))
    if "title" in edits:
        e.title = e.title.strip()
    if "is_all_day" in edits and payload.is_all_day is not None:
        e.is_all_day = payload.is_all_day
    if "event_type" in edits and payload.event_type is not None:
        e.event_type = payload.event_type.value
    if "recurrence_type" in edits and payload.recurrence_type is not None:
        e.recurrence_type = payload.recurrence_type.value
    if "metadata" in edits and payload.metadata is not None:
        # server-maintained keys survive a client overwrite
        kept = {k: v for k, v in e.meta.items() if k in ("agreement_id", "item_index", "completed_by", "completed_at")}
        e.meta = {**payload.metadata, **kept}

    if "is_completed" in sent and payload.is_completed is not None and bool(payload.is_completed) != bool(e.is_completed):
        _set_event_completion(db, e, user_id=user_id, completed=bool(payload.is_completed), now=now)

    e.updated_at = now
    audit_write(
        db,
        actor_user_id=user_id,
        action="timeline_event.update",
        entity_type="timeline_event",
        entity_id=e.id,
        property_id=e.property_id,
        before=before,
        after=e.model_dump(),
    )
    db.commit()
    db.refresh(e)

    invalidate_dashboards(db, e.property_id, user_id, e.user_id, e.assigned_to)
    log.info("timeline event updated", extra={"user_id": user_id, "event_id": e.id})
    return e


def delete_event(db: Session, *, user_id: str, event_id: str) -> None:
    e = must_get_event(db, user_id=user_id, event_id=event_id)
    if not is_event_creator(db, e, user_id=user_id):
        raise PermissionDenied("Only the event creator can delete this event")

    if parse_event_type(e.event_type) == TimelineEventType.AGREEMENT_TASK:
        ag = db.get(Agreement, str(e.meta.get("agreement_id") or ""))
        if ag is not None:
            items = ag.check_items
            for it in items:
                if it.get("event_id") == e.id:
                    it["event_id"] = None
            ag.check_items = items

    before = e.model_dump()
    property_id, owner, assignee = e.property_id, e.user_id, e.assigned_to
    db.delete(e)
    audit_write(
        db,
        actor_user_id=user_id,
        action="timeline_event.delete",
        entity_type="timeline_event",
        entity_id=event_id,
        property_id=property_id,
        before=before,
    )
    db.commit()

    invalidate_dashboards(db, property_id, user_id, owner, assignee)
    log.info("timeline event deleted", extra={"user_id": user_id, "event_id": event_id})


def assign_event(
    db: Session,
    *,
    user_id: str,
    event_id: str,
    target: Optional[str],
    notification_days_before: Optional[int],
) -> TimelineEvent:
    e = must_get_event(db, user_id=user_id, event_id=event_id)
    if parse_event_type(e.event_type) in MANAGED_TYPES:
        raise ValidationError("agreement tasks are assigned through their agreement")
    if target:
        must_know_user(db, user_id=target)

    before = e.model_dump()
    new = assignments.assign(
        _state_of(e),
        requester=user_id,
        is_creator=is_event_creator(db, e, user_id=user_id),
        target=target,
        notification_days_before=notification_days_before,
    )
    previous_assignee = e.assigned_to
    _apply_state(e, new)
    e.updated_at = datetime.utcnow()

    audit_write(
        db,
        actor_user_id=user_id,
        action="timeline_event.assign" if target else "timeline_event.unassign",
        entity_type="timeline_event",
        entity_id=e.id,
        property_id=e.property_id,
        before=before,
        after=e.model_dump(),
    )
    db.commit()
    db.refresh(e)

    invalidate_dashboards(db, e.property_id, user_id, previous_assignee, target)
    return e


def toggle_event_complete(db: Session, *, user_id: str, event_id: str, now: Optional[datetime] = None) -> TimelineEvent:
    now = now or datetime.utcnow()
    e = must_get_event(db, user_id=user_id, event_id=event_id)
    before = e.model_dump()

    _set_event_completion(db, e, user_id=user_id, completed=not e.is_completed, now=now)
    e.updated_at = now

    audit_write(
        db,
        actor_user_id=user_id,
        action="timeline_event.toggle_complete",
        entity_type="timeline_event",
        entity_id=e.id,
        property_id=e.property_id,
        before=before,
        after=e.model_dump(),
    )
    db.commit()
    db.refresh(e)

    invalidate_dashboards(db, e.property_id, user_id, e.user_id, e.assigned_to)
    return e


# -----------------------------
# Property sync
# -----------------------------
def property_facts(prop: Property) -> PropertyFacts:
    d = prop.details
    due = d.get("rent_due_day")
    return PropertyFacts(
        id=prop.id,
        name=prop.name,
        lease_start_date=prop.lease_start_date,
        lease_end_date=prop.lease_end_date,
        rent_amount=prop.rent_amount,
        rent_due_day=int(due) if due else None,
        currency=d.get("currency"),
    )


def _draft_row(d: EventDraft, *, property_id: str, user_id: str, now: datetime) -> TimelineEvent:
    row = TimelineEvent(
        property_id=property_id,
        user_id=user_id,
        title=d.title,
        description=d.description,
        event_type=d.event_type.value,
        start_date=d.start_datetime,
        end_date=None,
        is_all_day=d.is_all_day,
        recurrence_type=d.recurrence_type.value,
        notification_days_before=d.notification_days_before,
        is_completed=d.is_completed,
        created_at=now,
        updated_at=now,
    )
    row.meta = {**d.metadata, "generated": True}
    return row


def sync_property_events(
    db: Session, *, user_id: str, property_id: str, options: SyncOptions, today: date
) -> dict[str, int]:
    """
    Generate lifecycle events for a property. Lease and rent drafts already
    stored for (property, user, type, start date) are skipped. Drafts scheduled
    from the sync day match on (type, title) instead, so re-running on a later
    day is safe too.
    """
    prop = must_own_property(db, user_id=user_id, property_id=property_id)
    enforce_feature_limit(db, user_id=user_id, feature=FEATURE_TIMELINE_SYNC)

    cleared = 0
    if options.clear_all_events:
        res = db.execute(
            delete(TimelineEvent).where(
                TimelineEvent.property_id == prop.id,
                TimelineEvent.user_id == user_id,
                TimelineEvent.event_type.not_in([t.value for t in MANAGED_TYPES]),
            )
        )
        cleared = int(res.rowcount or 0)

    stored = db.execute(
        select(TimelineEvent.event_type, TimelineEvent.title, TimelineEvent.start_date).where(
            TimelineEvent.property_id == prop.id,
            TimelineEvent.user_id == user_id,
        )
    ).all()
    by_date = {(t, s) for t, _, s in stored}
    # not extended in the loop; maintenance emits several drafts per title
    by_title = {(t, title) for t, title, _ in stored}

    now = datetime.utcnow()
    created = skipped = 0
    for d in plan_property_events(property_facts(prop), options, today):
        key = d.dedupe_key
        if key in (by_title if d.anchored_on_today else by_date):
            skipped += 1
            continue
        if not d.anchored_on_today:
            by_date.add(key)
        db.add(_draft_row(d, property_id=prop.id, user_id=user_id, now=now))
        created += 1

    record_usage(db, user_id=user_id, feature=FEATURE_TIMELINE_SYNC, ref_id=prop.id)
    audit_write(
        db,
        actor_user_id=user_id,
        action="timeline.sync",
        entity_type="property",
        entity_id=prop.id,
        property_id=prop.id,
        after={"created": created, "skipped_existing": skipped, "cleared": cleared},
    )
    db.commit()

    invalidate_dashboards(db, prop.id, user_id)
    log.info(
        "timeline synced created=%s skipped=%s cleared=%s",
        created,
        skipped,
        cleared,
        extra={"user_id": user_id, "property_id": prop.id},
    )
    return {"created": created, "skipped_existing": skipped, "cleared": cleared}

