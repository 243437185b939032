# rentline/routers/usage.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import UsageCheckOut, UsageIncrementIn, UsageIncrementOut
from ..services.usage_service import check_feature_limit, current_usage, record_usage

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("/check-limits", response_model=UsageCheckOut)
def check_limits(
    feature: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return check_feature_limit(db, user_id=p.user_id, feature=feature).as_dict()


@router.post("/increment", response_model=UsageIncrementOut)
def increment(payload: UsageIncrementIn, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    record_usage(db, user_id=p.user_id, feature=payload.feature)
    db.commit()
    return {"feature": payload.feature, "new_usage": current_usage(db, user_id=p.user_id, feature=payload.feature)}
