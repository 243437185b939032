# rentline/routers/properties.py
from __future__ import annotations

import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain.audit import audit_write
from ..domain.errors import ValidationError
from ..models import Property, PropertyUser
from ..schemas import PropertyCreate, PropertyOut, PropertyUserCreate, PropertyUserOut
from ..services.ownership import accessible_property_ids, must_get_property, must_know_user, must_own_property
from ..services.timeline_service import invalidate_dashboards
from ..services.usage_service import FEATURE_PROPERTIES, enforce_feature_limit, record_usage

log = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["properties"])


@router.post("", response_model=PropertyOut, status_code=201)
def create_property(payload: PropertyCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    enforce_feature_limit(db, user_id=p.user_id, feature=FEATURE_PROPERTIES)

    data = payload.model_dump()
    details: dict = {}
    rent_due_day, currency = data.pop("rent_due_day", None), data.pop("currency", None)
    if rent_due_day is not None:
        details["rent_due_day"] = rent_due_day
    if currency:
        details["currency"] = currency.strip().upper()

    now = datetime.utcnow()
    row = Property(**data, details_json=json.dumps(details), created_by=p.user_id, created_at=now, updated_at=now)
    db.add(row)
    db.flush()
    db.add(PropertyUser(property_id=row.id, user_id=p.user_id, user_role="owner", created_at=now))

    record_usage(db, user_id=p.user_id, feature=FEATURE_PROPERTIES, ref_id=row.id)
    audit_write(
        db,
        actor_user_id=p.user_id,
        action="property.create",
        entity_type="property",
        entity_id=row.id,
        property_id=row.id,
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)

    invalidate_dashboards(db, row.id, p.user_id)
    log.info("property created", extra={"user_id": p.user_id, "property_id": row.id})
    return row


@router.get("", response_model=list[PropertyOut])
def list_properties(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    ids = accessible_property_ids(db, user_id=p.user_id)
    if not ids:
        return []
    return list(db.scalars(select(Property).where(Property.id.in_(ids)).order_by(Property.created_at.asc())).all())


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_property(db, user_id=p.user_id, property_id=property_id)


@router.get("/{property_id}/users", response_model=list[PropertyUserOut])
def list_property_users(property_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    prop = must_get_property(db, user_id=p.user_id, property_id=property_id)
    return list(db.scalars(select(PropertyUser).where(PropertyUser.property_id == prop.id)).all())


@router.post("/{property_id}/users", response_model=PropertyUserOut, status_code=201)
def add_property_user(
    property_id: str,
    payload: PropertyUserCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    prop = must_own_property(db, user_id=p.user_id, property_id=property_id)
    must_know_user(db, user_id=payload.user_id)

    existing = db.scalar(
        select(PropertyUser).where(PropertyUser.property_id == prop.id, PropertyUser.user_id == payload.user_id)
    )
    if existing is not None:
        if existing.user_role == payload.user_role:
            return existing
        if payload.user_id == prop.created_by:
            raise ValidationError("The property creator is always an owner")
        existing.user_role = payload.user_role
        row = existing
    else:
        row = PropertyUser(
            property_id=prop.id,
            user_id=payload.user_id,
            user_role=payload.user_role,
            created_at=datetime.utcnow(),
        )
        db.add(row)

    audit_write(
        db,
        actor_user_id=p.user_id,
        action="property.user.upsert",
        entity_type="property_user",
        entity_id=f"{prop.id}:{payload.user_id}",
        property_id=prop.id,
        after={"user_id": payload.user_id, "user_role": payload.user_role},
    )
    db.commit()
    db.refresh(row)

    invalidate_dashboards(db, prop.id, payload.user_id)
    return row
