# tests/test_usage_limits.py
from __future__ import annotations

import json
from datetime import datetime

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from rentline.db import SessionLocal
from rentline.main import create_app
from rentline.models import AppUser, Plan, Subscription
from rentline.services import usage_service
from rentline.services.usage_service import (
    FEATURE_AGREEMENTS,
    FEATURE_PROPERTIES,
    check_feature_limit,
    ensure_default_plans,
    record_usage,
)


def _headers(uid: str) -> dict[str, str]:
    return {"X-User-Id": uid, "X-User-Email": f"{uid}@demo.local"}


def _mk_user(db, uid: str, plan_code: str | None = None) -> None:
    db.add(AppUser(id=uid, email=f"{uid}@demo.local", created_at=datetime.utcnow()))
    if plan_code:
        db.add(Subscription(user_id=uid, plan_code=plan_code, status="active", created_at=datetime.utcnow()))
    db.commit()


def test_free_plan_caps_properties():
    db = SessionLocal()
    try:
        _mk_user(db, "u1")
        res = check_feature_limit(db, user_id="u1", feature=FEATURE_PROPERTIES)
        assert res.allowed and res.limit == 1 and res.plan == "free"

        record_usage(db, user_id="u1", feature=FEATURE_PROPERTIES)
        db.commit()

        res = check_feature_limit(db, user_id="u1", feature=FEATURE_PROPERTIES)
        assert not res.allowed
        assert res.current_usage == 1
        assert res.reason == "limit_reached"
    finally:
        db.close()


def test_unknown_feature_is_denied():
    db = SessionLocal()
    try:
        _mk_user(db, "u1")
        res = check_feature_limit(db, user_id="u1", feature="teleport")
        assert not res.allowed
        assert res.reason == "feature_not_in_plan"
    finally:
        db.close()


def test_unlimited_plans():
    db = SessionLocal()
    try:
        _mk_user(db, "pro-user", "pro")
        _mk_user(db, "biz-user", "business")

        for _ in range(5):
            record_usage(db, user_id="pro-user", feature=FEATURE_AGREEMENTS)
        db.commit()

        res = check_feature_limit(db, user_id="pro-user", feature=FEATURE_AGREEMENTS)
        assert res.allowed and res.limit is None and res.current_usage == 5

        res = check_feature_limit(db, user_id="biz-user", feature="anything")
        assert res.allowed and res.limit is None
    finally:
        db.close()


def test_unknown_plan_and_malformed_features_fail_closed():
    db = SessionLocal()
    try:
        ensure_default_plans(db)
        db.add(Plan(code="broken", name="Broken", features_json="{not json"))
        db.commit()
        _mk_user(db, "ghost-plan", "gone")
        _mk_user(db, "broken-plan", "broken")

        res = check_feature_limit(db, user_id="ghost-plan", feature=FEATURE_PROPERTIES)
        assert not res.allowed and res.reason == "unknown_plan"

        res = check_feature_limit(db, user_id="broken-plan", feature=FEATURE_PROPERTIES)
        assert not res.allowed
    finally:
        db.close()


def test_store_errors_fail_closed(monkeypatch):
    def boom(db, *, user_id, feature):
        raise OperationalError("SELECT", {}, Exception("db down"))

    monkeypatch.setattr(usage_service, "current_usage", boom)

    db = SessionLocal()
    try:
        _mk_user(db, "u1")
        res = check_feature_limit(db, user_id="u1", feature=FEATURE_PROPERTIES)
        assert not res.allowed
        assert res.reason == "limit_check_failed"
    finally:
        db.close()


def test_limit_gate_on_property_create_returns_402():
    client = TestClient(create_app())
    r = client.post("/api/properties", headers=_headers("alice"), json={"name": "One"})
    assert r.status_code == 201

    r = client.post("/api/properties", headers=_headers("alice"), json={"name": "Two"})
    assert r.status_code == 402
    body = r.json()
    assert body["error"] == "plan_limit_exceeded"
    assert body["context"]["limit"] == 1
    assert body["context"]["feature"] == "properties"


def test_usage_routes():
    client = TestClient(create_app())
    r = client.get("/api/usage/check-limits?feature=agreements", headers=_headers("alice"))
    assert r.status_code == 200
    assert r.json() == {
        "feature": "agreements",
        "allowed": True,
        "current_usage": 0,
        "limit": 3,
        "plan": "free",
        "reason": None,
    }

    r = client.post("/api/usage/increment", headers=_headers("alice"), json={"feature": "agreements"})
    assert r.json() == {"feature": "agreements", "new_usage": 1}

    db = SessionLocal()
    try:
        plan = db.query(Plan).filter(Plan.code == "free").one()
        assert json.loads(plan.features_json)["agreements"] == 3
    finally:
        db.close()
