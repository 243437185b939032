# rentline/models.py
from __future__ import annotations

import json
import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _loads(s: Optional[str], default: Any) -> Any:
    if not s:
        return default
    try:
        v = json.loads(s)
    except (TypeError, ValueError):
        return default
    return v if isinstance(v, type(default)) else default


class RowDumpMixin:
    def model_dump(self) -> dict[str, Any]:
        return {c.name: getattr(self, c.key, None) for c in self.__table__.columns}


# -----------------------------
# Identity (mirrors Supabase auth users)
# -----------------------------
class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    property_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Properties + membership
# -----------------------------
class Property(RowDumpMixin, Base):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    address_line1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    postcode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    lease_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    lease_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    rent_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # {"rent_due_day": 1, "currency": "GBP", ...}
    details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("app_users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def details(self) -> dict[str, Any]:
        return _loads(self.details_json, {})


class PropertyUser(Base):
    __tablename__ = "property_users"
    __table_args__ = (UniqueConstraint("property_id", "user_id", name="uq_property_users_property_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("app_users.id"), index=True, nullable=False)
    user_role: Mapped[str] = mapped_column(String(20), nullable=False, default="tenant")  # owner|tenant
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Timeline
# -----------------------------
class TimelineEvent(RowDumpMixin, Base):
    __tablename__ = "timeline_events"
    __table_args__ = (
        Index("ix_timeline_events_property_start", "property_id", "start_date"),
        Index("ix_timeline_events_user_start", "user_id", "start_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("app_users.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False, index=True)

    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    recurrence_type: Mapped[str] = mapped_column(String(20), nullable=False, default="none")
    recurrence_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    notification_days_before: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("app_users.id"), nullable=True)

    # "metadata" is reserved on declarative classes
    metadata_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def meta(self) -> dict[str, Any]:
        return _loads(self.metadata_json, {})

    @meta.setter
    def meta(self, value: Optional[dict[str, Any]]) -> None:
        self.metadata_json = json.dumps(value or {}, ensure_ascii=False, default=str)


# -----------------------------
# Agreements
# -----------------------------
class Agreement(RowDumpMixin, Base):
    __tablename__ = "agreements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("app_users.id"), nullable=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # ordered list of check items, see schemas.CheckItemOut
    check_items_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def check_items(self) -> list[dict[str, Any]]:
        return _loads(self.check_items_json, [])

    @check_items.setter
    def check_items(self, items: list[dict[str, Any]]) -> None:
        self.check_items_json = json.dumps(list(items or []), ensure_ascii=False, default=str)


# -----------------------------
# Plans / usage (Stripe owns billing; these mirror what it tells us)
# -----------------------------
class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    # {"properties": 1, "agreements": 3} ; -1 or {"unlimited": true} => no cap
    features_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("app_users.id"), index=True, nullable=False)
    plan_code: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class UsageLedger(Base):
    __tablename__ = "usage_ledger"
    __table_args__ = (Index("ix_usage_ledger_user_feature", "user_id", "feature"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("app_users.id"), nullable=False)
    feature: Mapped[str] = mapped_column(String(60), nullable=False)
    units: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ref_id: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
