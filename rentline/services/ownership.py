# rentline/services/ownership.py
from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..domain.errors import NotFound, PermissionDenied, ValidationError
from ..models import Agreement, AppUser, Property, PropertyUser, TimelineEvent


def accessible_property_ids(db: Session, *, user_id: str) -> list[str]:
    member_of = select(PropertyUser.property_id).where(PropertyUser.user_id == user_id)
    rows = db.scalars(
        select(Property.id).where(or_(Property.created_by == user_id, Property.id.in_(member_of)))
    ).all()
    return [str(x) for x in rows]


def _membership(db: Session, *, property_id: str, user_id: str) -> PropertyUser | None:
    return db.scalar(
        select(PropertyUser).where(PropertyUser.property_id == property_id, PropertyUser.user_id == user_id)
    )


def has_property_access(db: Session, prop: Property, *, user_id: str) -> bool:
    if prop.created_by == user_id:
        return True
    return _membership(db, property_id=prop.id, user_id=user_id) is not None


def is_property_owner(db: Session, prop: Property, *, user_id: str) -> bool:
    if prop.created_by == user_id:
        return True
    mem = _membership(db, property_id=prop.id, user_id=user_id)
    return mem is not None and mem.user_role == "owner"


def must_get_property(db: Session, *, user_id: str, property_id: str) -> Property:
    # 404 rather than 403 so ids of other people's properties are not confirmed
    row = db.get(Property, str(property_id))
    if not row or not has_property_access(db, row, user_id=user_id):
        raise NotFound("property not found")
    return row


def must_own_property(db: Session, *, user_id: str, property_id: str) -> Property:
    row = must_get_property(db, user_id=user_id, property_id=property_id)
    if not is_property_owner(db, row, user_id=user_id):
        raise PermissionDenied("Only a property owner can do this")
    return row


def must_get_event(db: Session, *, user_id: str, event_id: str) -> TimelineEvent:
    row = db.get(TimelineEvent, str(event_id))
    if not row:
        raise NotFound("event not found")
    if row.user_id == user_id or row.assigned_to == user_id:
        return row
    prop = db.get(Property, row.property_id)
    if not prop or not has_property_access(db, prop, user_id=user_id):
        raise NotFound("event not found")
    return row


def must_get_agreement(db: Session, *, user_id: str, agreement_id: str) -> Agreement:
    row = db.get(Agreement, str(agreement_id))
    if not row:
        raise NotFound("agreement not found")
    if row.created_by == user_id:
        return row
    prop = db.get(Property, row.property_id)
    if not prop or not has_property_access(db, prop, user_id=user_id):
        raise NotFound("agreement not found")
    return row


def must_know_user(db: Session, *, user_id: str) -> AppUser:
    row = db.get(AppUser, str(user_id))
    if not row:
        raise ValidationError(f"unknown user {user_id}")
    return row
