# rentline/services/agreement_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain import assignments
from ..domain.assignments import TaskState
from ..domain.audit import audit_write
from ..domain.errors import PermissionDenied, ValidationError
from ..domain.timeline import TimelineEventRecurrence, TimelineEventType
from ..models import Agreement, TimelineEvent
from ..schemas import AgreementCreate, AgreementTaskAction, AgreementUpdate, CheckItemIn
from .ownership import accessible_property_ids, must_get_agreement, must_get_property, must_know_user
from .timeline_service import invalidate_dashboards
from .usage_service import FEATURE_AGREEMENTS, enforce_feature_limit, record_usage

log = logging.getLogger(__name__)


# -----------------------------
# Check item <-> TaskState
# -----------------------------
def _item_dict(item: CheckItemIn) -> dict[str, Any]:
    return {
        "text": item.text.strip(),
        "checked": bool(item.checked),
        "assigned_to": item.assigned_to,
        "notification_days_before": item.notification_days_before,
        "completed_by": None,
        "completed_at": None,
        "event_id": None,
    }


def _state_of(item: dict[str, Any]) -> TaskState:
    completed_at = item.get("completed_at")
    return TaskState(
        assigned_to=item.get("assigned_to"),
        notification_days_before=item.get("notification_days_before"),
        completed=bool(item.get("checked")),
        completed_by=item.get("completed_by"),
        completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
    )


def _apply_state(item: dict[str, Any], state: TaskState) -> None:
    item.update(
        assigned_to=state.assigned_to,
        notification_days_before=state.notification_days_before,
        checked=state.completed,
        completed_by=state.completed_by,
        completed_at=state.completed_at.isoformat() if state.completed_at else None,
    )


def agreement_out(ag: Agreement) -> dict[str, Any]:
    return {
        "id": ag.id,
        "property_id": ag.property_id,
        "title": ag.title,
        "created_by": ag.created_by,
        "due_date": ag.due_date,
        "check_items": ag.check_items,
        "created_at": ag.created_at,
        "updated_at": ag.updated_at,
    }


# -----------------------------
# Timeline mirroring
# -----------------------------
def _marker_events(db: Session, ag: Agreement) -> list[TimelineEvent]:
    rows = db.scalars(
        select(TimelineEvent).where(
            TimelineEvent.property_id == ag.property_id,
            TimelineEvent.event_type.in_([TimelineEventType.AGREEMENT.value, TimelineEventType.AGREEMENT_TASK.value]),
        )
    ).all()
    return [r for r in rows if r.meta.get("agreement_id") == ag.id]


def _drop_task_event(db: Session, item: dict[str, Any]) -> None:
    eid = item.get("event_id")
    item["event_id"] = None
    ev = db.get(TimelineEvent, eid) if eid else None
    if ev is not None:
        db.delete(ev)


def _mirror_task_event(db: Session, ag: Agreement, idx: int, item: dict[str, Any], now: datetime) -> None:
    """One agreement_task event per assigned item, owned by the assignee, on the due date."""
    if not ag.due_date or not item.get("assigned_to"):
        return
    ev = TimelineEvent(
        property_id=ag.property_id,
        user_id=item["assigned_to"],
        title=item["text"],
        description=f"Agreement: {ag.title}",
        event_type=TimelineEventType.AGREEMENT_TASK.value,
        start_date=ag.due_date,
        is_all_day=True,
        recurrence_type=TimelineEventRecurrence.NONE.value,
        notification_days_before=item.get("notification_days_before"),
        is_completed=bool(item.get("checked")),
        assigned_to=item["assigned_to"],
        created_at=now,
        updated_at=now,
    )
    ev.meta = {
        "agreement_id": ag.id,
        "item_index": idx,
        "completed_by": item.get("completed_by"),
        "completed_at": item.get("completed_at"),
    }
    db.add(ev)
    db.flush()
    item["event_id"] = ev.id


def _sync_marker(db: Session, ag: Agreement, now: datetime) -> None:
    marker = next((e for e in _marker_events(db, ag) if e.event_type == TimelineEventType.AGREEMENT.value), None)
    if not ag.due_date:
        if marker is not None:
            db.delete(marker)
        return
    if marker is None:
        marker = TimelineEvent(
            property_id=ag.property_id,
            user_id=ag.created_by,
            event_type=TimelineEventType.AGREEMENT.value,
            recurrence_type=TimelineEventRecurrence.NONE.value,
            is_all_day=True,
            is_completed=False,
            created_at=now,
        )
        marker.meta = {"agreement_id": ag.id}
        db.add(marker)
    marker.title = f"Agreement due: {ag.title}"
    marker.start_date = ag.due_date
    marker.updated_at = now


def _remirror_all(db: Session, ag: Agreement, items: list[dict[str, Any]], now: datetime) -> None:
    for e in _marker_events(db, ag):
        if e.event_type == TimelineEventType.AGREEMENT_TASK.value:
            db.delete(e)
    db.flush()
    for i, it in enumerate(items):
        it["event_id"] = None
        _mirror_task_event(db, ag, i, it, now)
    _sync_marker(db, ag, now)


def _affected_users(ag: Agreement) -> list[Optional[str]]:
    return [ag.created_by, *(it.get("assigned_to") for it in ag.check_items)]


# -----------------------------
# CRUD
# -----------------------------
def list_agreements(db: Session, *, user_id: str, property_id: Optional[str] = None) -> list[Agreement]:
    if property_id:
        must_get_property(db, user_id=user_id, property_id=property_id)
        pids = [str(property_id)]
    else:
        pids = accessible_property_ids(db, user_id=user_id)
    if not pids:
        return []
    return list(
        db.scalars(
            select(Agreement).where(Agreement.property_id.in_(pids)).order_by(Agreement.created_at.desc())
        ).all()
    )


def create_agreement(db: Session, *, user_id: str, payload: AgreementCreate) -> Agreement:
    prop = must_get_property(db, user_id=user_id, property_id=payload.property_id)
    enforce_feature_limit(db, user_id=user_id, feature=FEATURE_AGREEMENTS)

    now = datetime.utcnow()
    ag = Agreement(
        property_id=prop.id,
        title=payload.title.strip(),
        created_by=user_id,
        due_date=payload.due_date,
        created_at=now,
        updated_at=now,
    )
    items = [_item_dict(i) for i in payload.check_items]
    for it in items:
        if it["assigned_to"]:
            must_know_user(db, user_id=it["assigned_to"])
        if it["checked"]:
            it.update(completed_by=user_id, completed_at=now.isoformat())
    ag.check_items = items
    db.add(ag)
    db.flush()

    _remirror_all(db, ag, items, now)
    ag.check_items = items

    record_usage(db, user_id=user_id, feature=FEATURE_AGREEMENTS, ref_id=ag.id)
    audit_write(
        db,
        actor_user_id=user_id,
        action="agreement.create",
        entity_type="agreement",
        entity_id=ag.id,
        property_id=prop.id,
        after=ag.model_dump(),
    )
    db.commit()
    db.refresh(ag)

    invalidate_dashboards(db, ag.property_id, *_affected_users(ag))
    log.info("agreement created", extra={"user_id": user_id, "property_id": prop.id, "agreement_id": ag.id})
    return ag


def update_agreement(db: Session, *, user_id: str, agreement_id: str, payload: AgreementUpdate) -> Agreement:
    ag = must_get_agreement(db, user_id=user_id, agreement_id=agreement_id)
    if ag.created_by != user_id:
        raise PermissionDenied("Only the agreement creator can edit it")

    before = ag.model_dump()
    before_users = _affected_users(ag)
    now = datetime.utcnow()
    sent = payload.model_fields_set

    if "title" in sent:
        if not (payload.title or "").strip():
            raise ValidationError("title is required")
        ag.title = payload.title.strip()
    if "due_date" in sent:
        ag.due_date = payload.due_date

    items = ag.check_items
    if "check_items" in sent and payload.check_items is not None:
        old = {it.get("text"): it for it in items}
        items = []
        for i in payload.check_items:
            it = _item_dict(i)
            if it["assigned_to"]:
                must_know_user(db, user_id=it["assigned_to"])
            prev = old.get(it["text"])
            # keep completion stamps for items that stay checked
            if it["checked"] and prev and prev.get("checked"):
                it.update(completed_by=prev.get("completed_by"), completed_at=prev.get("completed_at"))
            elif it["checked"]:
                it.update(completed_by=user_id, completed_at=now.isoformat())
            items.append(it)

    _remirror_all(db, ag, items, now)
    ag.check_items = items
    ag.updated_at = now

    audit_write(
        db,
        actor_user_id=user_id,
        action="agreement.update",
        entity_type="agreement",
        entity_id=ag.id,
        property_id=ag.property_id,
        before=before,
        after=ag.model_dump(),
    )
    db.commit()
    db.refresh(ag)

    invalidate_dashboards(db, ag.property_id, *before_users, *_affected_users(ag))
    return ag


def delete_agreement(db: Session, *, user_id: str, agreement_id: str) -> None:
    ag = must_get_agreement(db, user_id=user_id, agreement_id=agreement_id)
    if ag.created_by != user_id:
        raise PermissionDenied("Only the agreement creator can delete it")

    users = _affected_users(ag)
    property_id = ag.property_id
    for e in _marker_events(db, ag):
        db.delete(e)

    audit_write(
        db,
        actor_user_id=user_id,
        action="agreement.delete",
        entity_type="agreement",
        entity_id=ag.id,
        property_id=property_id,
        before=ag.model_dump(),
    )
    db.delete(ag)
    db.commit()

    invalidate_dashboards(db, property_id, *users)
    log.info("agreement deleted", extra={"user_id": user_id, "agreement_id": agreement_id})


# -----------------------------
# Task action (assign | unassign | complete)
# -----------------------------
def apply_task_action(
    db: Session, *, user_id: str, agreement_id: str, action: AgreementTaskAction, now: Optional[datetime] = None
) -> Agreement:
    """
    Run one state-machine step on a check item. The domain function decides;
    nothing is written when it refuses. For "complete" the server toggles, so
    the returned check_items carry the authoritative checked value.
    """
    if action.agreement_id and str(action.agreement_id) != str(agreement_id):
        raise ValidationError("agreementId does not match the path")

    now = now or datetime.utcnow()
    ag = must_get_agreement(db, user_id=user_id, agreement_id=agreement_id)
    items = ag.check_items
    if action.item_index >= len(items):
        raise ValidationError(f"itemIndex {action.item_index} out of range")

    item = items[action.item_index]
    state = _state_of(item)
    is_creator = ag.created_by == user_id
    previous_assignee = state.assigned_to

    if action.action == "assign":
        target = action.user_id or None
        if target is None:
            raise ValidationError("userId is required to assign")
        must_know_user(db, user_id=target)
        new = assignments.assign(
            state,
            requester=user_id,
            is_creator=is_creator,
            target=target,
            notification_days_before=action.notification_days_before,
        )
    elif action.action == "unassign":
        new = assignments.unassign(state, requester=user_id, is_creator=is_creator)
    else:
        new = assignments.toggle_complete(
            state,
            requester=user_id,
            is_creator=is_creator,
            now=now,
            clear_on_reopen=settings.clear_completion_on_reopen,
        )

    before = ag.model_dump()
    _apply_state(item, new)

    if action.action == "complete":
        ev = db.get(TimelineEvent, item.get("event_id") or "")
        if ev is not None:
            ev.is_completed = new.completed
            ev.meta = {**ev.meta, "completed_by": new.completed_by, "completed_at": item.get("completed_at")}
            ev.updated_at = now
    else:
        # reassignment replaces the mirrored event; unassignment removes it
        _drop_task_event(db, item)
        db.flush()
        _mirror_task_event(db, ag, action.item_index, item, now)

    ag.check_items = items
    ag.updated_at = now

    audit_write(
        db,
        actor_user_id=user_id,
        action=f"agreement.task.{action.action}",
        entity_type="agreement",
        entity_id=ag.id,
        property_id=ag.property_id,
        before=before,
        after=ag.model_dump(),
    )
    db.commit()
    db.refresh(ag)

    invalidate_dashboards(db, ag.property_id, user_id, ag.created_by, previous_assignee, new.assigned_to)
    log.info(
        "agreement task %s item=%s",
        action.action,
        action.item_index,
        extra={"user_id": user_id, "agreement_id": ag.id},
    )
    return ag
