# rentline/services/usage_service.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.errors import LimitExceeded
from ..models import Plan, Subscription, UsageLedger

log = logging.getLogger(__name__)

FEATURE_PROPERTIES = "properties"
FEATURE_AGREEMENTS = "agreements"
FEATURE_TIMELINE_SYNC = "timeline_sync"

# -1 => unlimited
DEFAULT_PLANS: dict[str, dict[str, Any]] = {
    "free": {FEATURE_PROPERTIES: 1, FEATURE_AGREEMENTS: 3, FEATURE_TIMELINE_SYNC: 10},
    "pro": {FEATURE_PROPERTIES: 10, FEATURE_AGREEMENTS: -1, FEATURE_TIMELINE_SYNC: -1},
    "business": {"unlimited": True},
}


@dataclass(frozen=True)
class LimitCheck:
    feature: str
    allowed: bool
    current_usage: int
    limit: Optional[int]  # None => unlimited
    plan: Optional[str]
    reason: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "feature": self.feature,
            "allowed": self.allowed,
            "current_usage": self.current_usage,
            "limit": self.limit,
            "plan": self.plan,
            "reason": self.reason,
        }


def ensure_default_plans(db: Session) -> None:
    existing = {p.code for p in db.scalars(select(Plan)).all()}
    added = False
    for code, features in DEFAULT_PLANS.items():
        if code in existing:
            continue
        db.add(Plan(code=code, name=code.title(), features_json=json.dumps(features)))
        added = True
    if added:
        db.commit()


def plan_code_for_user(db: Session, *, user_id: str) -> str:
    sub = db.scalar(
        select(Subscription)
        .where(Subscription.user_id == user_id, Subscription.status == "active")
        .order_by(Subscription.id.desc())
        .limit(1)
    )
    return str(sub.plan_code) if sub else settings.default_plan_code


def _features(plan: Optional[Plan]) -> dict[str, Any]:
    if plan is None:
        return {}
    try:
        v = json.loads(plan.features_json or "{}")
    except (TypeError, ValueError):
        return {}
    return v if isinstance(v, dict) else {}


def _limit_for(features: dict[str, Any], feature: str) -> tuple[bool, Optional[int]]:
    """(known, limit). limit None means unlimited; unknown features are treated as capped at 0."""
    if features.get("unlimited") is True:
        return True, None
    raw = features.get(feature)
    if raw is None:
        return False, 0
    try:
        n = int(raw)
    except (TypeError, ValueError):
        return False, 0
    return True, (None if n < 0 else n)


def current_usage(db: Session, *, user_id: str, feature: str) -> int:
    used = db.scalar(
        select(func.coalesce(func.sum(UsageLedger.units), 0)).where(
            UsageLedger.user_id == user_id,
            UsageLedger.feature == feature,
        )
    )
    return int(used or 0)


def check_feature_limit(db: Session, *, user_id: str, feature: str, add_units: int = 1) -> LimitCheck:
    """
    The one limit check every gate goes through. Fails closed: if the plan or
    the usage count cannot be read, the answer is "not allowed".

    Read-then-compare; concurrent requests can both pass before either records
    usage, so a limit can be overshot by the number of racing requests.
    """
    plan_code: Optional[str] = None
    try:
        ensure_default_plans(db)
        plan_code = plan_code_for_user(db, user_id=user_id)
        plan = db.scalar(select(Plan).where(Plan.code == plan_code))
        used = current_usage(db, user_id=user_id, feature=feature)
    except SQLAlchemyError:
        log.warning("limit check failed; denying", extra={"user_id": user_id, "feature": feature}, exc_info=True)
        db.rollback()
        return LimitCheck(feature, False, 0, 0, plan_code, reason="limit_check_failed")

    if plan is None:
        return LimitCheck(feature, False, used, 0, plan_code, reason="unknown_plan")

    known, limit = _limit_for(_features(plan), feature)
    if limit is None:
        return LimitCheck(feature, True, used, None, plan_code)
    if not known:
        return LimitCheck(feature, False, used, 0, plan_code, reason="feature_not_in_plan")
    if used + int(add_units) > limit:
        return LimitCheck(feature, False, used, limit, plan_code, reason="limit_reached")
    return LimitCheck(feature, True, used, limit, plan_code)


def enforce_feature_limit(db: Session, *, user_id: str, feature: str, add_units: int = 1) -> LimitCheck:
    res = check_feature_limit(db, user_id=user_id, feature=feature, add_units=add_units)
    if not res.allowed:
        raise LimitExceeded(
            f"Plan limit reached: {feature}={res.current_usage}/{res.limit}",
            extra=res.as_dict(),
        )
    return res


def record_usage(db: Session, *, user_id: str, feature: str, units: int = 1, ref_id: str | None = None) -> None:
    """Adds a ledger row; the caller commits it together with the write it pays for."""
    db.add(
        UsageLedger(
            user_id=str(user_id),
            feature=str(feature),
            units=int(units),
            ref_id=str(ref_id) if ref_id else None,
            created_at=datetime.utcnow(),
        )
    )
