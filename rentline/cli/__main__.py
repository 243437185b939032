# rentline/cli/__main__.py
from __future__ import annotations

import argparse
import json
from datetime import date

from rentline.cli.seed_demo import seed_demo
from rentline.db import Base, SessionLocal, engine
from rentline.domain.timeline_sync import SyncOptions
from rentline.services.timeline_service import sync_property_events


def _cmd_seed(args: argparse.Namespace) -> dict:
    out = seed_demo(
        user_id=args.user_id,
        user_email=args.user_email,
        user_name=args.user_name,
        plan_code=args.plan_code,
        create_sample_property=(not args.no_sample_property),
    )
    return {
        "ok": True,
        "user_id": out.user_id,
        "user_email": out.user_email,
        "plan_code": out.plan_code,
        "sample_property_id": out.property_id,
    }


def _cmd_sync(args: argparse.Namespace) -> dict:
    options = SyncOptions(
        include_inspections=args.inspections is not None,
        inspection_frequency=args.inspections or "annual",
        include_maintenance_reminders=args.maintenance,
        include_property_taxes=args.taxes,
        include_insurance=args.insurance,
        upfront_rent_paid=args.upfront_rent_paid,
        clear_all_events=args.clear,
    )
    today = date.fromisoformat(args.today) if args.today else date.today()

    db = SessionLocal()
    try:
        res = sync_property_events(db, user_id=args.user_id, property_id=args.property_id, options=options, today=today)
    finally:
        db.close()
    return {"ok": True, **res}


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m rentline.cli")
    p.add_argument("--create-tables", action="store_true", help="create_all before running (sqlite / local dev)")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("seed-demo", help="demo user, plans and a sample property")
    s.add_argument("--user-id", default="demo-user")
    s.add_argument("--user-email", default="demo@rentline.local")
    s.add_argument("--user-name", default="Demo")
    s.add_argument("--plan-code", default="free", choices=["free", "pro", "business"])
    s.add_argument("--no-sample-property", action="store_true")
    s.set_defaults(func=_cmd_seed)

    y = sub.add_parser("sync", help="generate lifecycle events for a property")
    y.add_argument("property_id")
    y.add_argument("--user-id", default="demo-user")
    y.add_argument("--inspections", choices=["annual", "biannual", "quarterly"], default=None)
    y.add_argument("--maintenance", action="store_true")
    y.add_argument("--taxes", action="store_true")
    y.add_argument("--insurance", action="store_true")
    y.add_argument("--upfront-rent-paid", type=int, default=0)
    y.add_argument("--clear", action="store_true")
    y.add_argument("--today", default=None, help="YYYY-MM-DD")
    y.set_defaults(func=_cmd_sync)

    args = p.parse_args()
    if args.create_tables:
        Base.metadata.create_all(bind=engine)
    print(json.dumps(args.func(args), default=str))


if __name__ == "__main__":
    main()
