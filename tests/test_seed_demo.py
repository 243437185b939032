# tests/test_seed_demo.py
from __future__ import annotations

from datetime import date

import pytest

from rentline.cli.seed_demo import seed_demo
from rentline.db import SessionLocal
from rentline.models import Property, Subscription
from rentline.services.usage_service import check_feature_limit


def test_seed_demo_is_idempotent():
    a = seed_demo(plan_code="pro", today=date(2026, 3, 10))
    b = seed_demo(plan_code="pro", today=date(2026, 3, 10))
    assert a == b
    assert a.property_id

    db = SessionLocal()
    try:
        assert db.query(Property).filter(Property.created_by == "demo-user").count() == 1
        assert db.query(Subscription).filter(Subscription.user_id == "demo-user").count() == 1

        prop = db.get(Property, a.property_id)
        assert prop.lease_start_date == date(2026, 3, 1)
        assert prop.details["currency"] == "GBP"

        assert check_feature_limit(db, user_id="demo-user", feature="agreements").limit is None
    finally:
        db.close()


def test_seed_demo_rejects_unknown_plan():
    with pytest.raises(ValueError):
        seed_demo(plan_code="platinum")
