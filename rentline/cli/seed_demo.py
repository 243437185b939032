# rentline/cli/seed_demo.py
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from rentline.db import SessionLocal
from rentline.models import AppUser, Property, PropertyUser, Subscription
from rentline.services.usage_service import DEFAULT_PLANS, ensure_default_plans


@dataclass(frozen=True)
class SeedResult:
    user_id: str
    user_email: str
    plan_code: str
    property_id: Optional[str]


def _get_or_create_user(db: Session, user_id: str, email: str, display_name: str) -> AppUser:
    row = db.get(AppUser, user_id)
    if row:
        return row
    row = AppUser(id=user_id, email=email, display_name=display_name, created_at=datetime.utcnow())
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_subscription(db: Session, user_id: str, plan_code: str) -> None:
    row = db.query(Subscription).filter(Subscription.user_id == user_id).order_by(Subscription.id.desc()).first()
    if row and row.plan_code == plan_code and row.status == "active":
        return
    db.add(Subscription(user_id=user_id, plan_code=plan_code, status="active", created_at=datetime.utcnow()))
    db.commit()


def _get_or_create_property(db: Session, user_id: str, today: date) -> Property:
    row = (
        db.query(Property)
        .filter(Property.created_by == user_id, Property.name == "Demo Flat")
        .one_or_none()
    )
    if row:
        return row

    now = datetime.utcnow()
    row = Property(
        name="Demo Flat",
        address_line1="1 Demo Street",
        city="London",
        postcode="E1 6AN",
        lease_start_date=date(today.year, today.month, 1),
        lease_end_date=date(today.year + 1, today.month, 1),
        rent_amount=1250.0,
        details_json=json.dumps({"rent_due_day": 1, "currency": "GBP"}),
        created_by=user_id,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.flush()
    db.add(PropertyUser(property_id=row.id, user_id=user_id, user_role="owner", created_at=now))
    db.commit()
    db.refresh(row)
    return row


def seed_demo(
    *,
    user_id: str = "demo-user",
    user_email: str = "demo@rentline.local",
    user_name: str = "Demo",
    plan_code: str = "free",
    create_sample_property: bool = True,
    today: Optional[date] = None,
) -> SeedResult:
    if plan_code not in DEFAULT_PLANS:
        raise ValueError(f"unknown plan_code {plan_code!r}")

    db = SessionLocal()
    try:
        ensure_default_plans(db)
        user = _get_or_create_user(db, user_id, user_email, user_name)
        _ensure_subscription(db, user.id, plan_code)

        prop_id = None
        if create_sample_property:
            prop_id = _get_or_create_property(db, user.id, today or datetime.utcnow().date()).id

        return SeedResult(user_id=user.id, user_email=str(user.email), plan_code=plan_code, property_id=prop_id)
    finally:
        db.close()
