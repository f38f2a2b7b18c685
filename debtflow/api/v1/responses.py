"""Customer payment claims and staff decisions"""

import uuid
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from debtflow.api.dependencies import get_today
from debtflow.api.v1.schemas import ClaimCreate, ClaimOut, DebtOut, ResolutionIn
from debtflow.domain.models import ResponseStatus
from debtflow.infrastructure.database.session import get_db
from debtflow.services.reconciliation import ReconciliationService

router = APIRouter()


@router.post("/debts/{debt_id}/responses", response_model=ClaimOut, status_code=201)
def submit_claim(
    debt_id: uuid.UUID,
    body: ClaimCreate,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """Customer reports a debt as paid; 409 if a claim is already pending"""
    response = ReconciliationService(db).submit_claim(
        debt_id,
        body.response_type,
        today,
        payment_date=body.payment_date,
        payment_reference=body.payment_reference,
        payment_amount=body.payment_amount,
        comments=body.comments,
    )
    return ClaimOut.model_validate(response)


@router.get("/responses", response_model=List[ClaimOut])
def list_claims(
    user_id: str = Query(..., description="User identifier"),
    status: Optional[ResponseStatus] = Query(None),
    db: Session = Depends(get_db),
):
    return [ClaimOut.model_validate(r) for r in ReconciliationService(db).list_claims(user_id, status)]


@router.post("/responses/{response_id}/verify", response_model=DebtOut)
def verify_claim(
    response_id: uuid.UUID,
    body: ResolutionIn,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """Accept a claim; the claimed amount is applied to the debt as a payment"""
    debt = ReconciliationService(db).verify(response_id, body.note, today)
    return DebtOut.model_validate(debt)


@router.post("/responses/{response_id}/reject", response_model=DebtOut)
def reject_claim(
    response_id: uuid.UUID,
    body: ResolutionIn,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    debt = ReconciliationService(db).reject(response_id, body.note, today)
    return DebtOut.model_validate(debt)
