# rentline/routers/agreements.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain.errors import ValidationError
from ..schemas import AgreementCreate, AgreementOut, AgreementTaskAction, AgreementUpdate
from ..services import agreement_service as svc
from ..services.ownership import must_get_agreement

router = APIRouter(prefix="/agreements", tags=["agreements"])


@router.get("", response_model=list[AgreementOut])
def list_agreements(
    property_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return [svc.agreement_out(a) for a in svc.list_agreements(db, user_id=p.user_id, property_id=property_id)]


@router.post("", response_model=AgreementOut, status_code=201)
def create_agreement(payload: AgreementCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.agreement_out(svc.create_agreement(db, user_id=p.user_id, payload=payload))


# registered before /{agreement_id} so "tasks" is not read as an id
@router.put("/tasks", response_model=AgreementOut)
def agreement_task_by_body(
    payload: AgreementTaskAction,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """Same as PUT /agreements/{id}/tasks with agreementId carried in the body."""
    if not payload.agreement_id:
        raise ValidationError("agreementId is required")
    ag = svc.apply_task_action(db, user_id=p.user_id, agreement_id=payload.agreement_id, action=payload)
    return svc.agreement_out(ag)


@router.get("/{agreement_id}", response_model=AgreementOut)
def get_agreement(agreement_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.agreement_out(must_get_agreement(db, user_id=p.user_id, agreement_id=agreement_id))


@router.put("/{agreement_id}", response_model=AgreementOut)
def update_agreement(
    agreement_id: str,
    payload: AgreementUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return svc.agreement_out(svc.update_agreement(db, user_id=p.user_id, agreement_id=agreement_id, payload=payload))


@router.delete("/{agreement_id}", response_model=dict)
def delete_agreement(agreement_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    svc.delete_agreement(db, user_id=p.user_id, agreement_id=agreement_id)
    return {"ok": True}


@router.put("/{agreement_id}/tasks", response_model=AgreementOut)
def agreement_task(
    agreement_id: str,
    payload: AgreementTaskAction,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """
    One check-item step: assign | unassign | complete.

    "complete" toggles server-side; the response carries the resulting checked
    value, so clients should take check_items from here rather than guess.
    """
    ag = svc.apply_task_action(db, user_id=p.user_id, agreement_id=agreement_id, action=payload)
    return svc.agreement_out(ag)
