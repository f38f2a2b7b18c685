"""Debt registration, lookup and payment events"""

import uuid
from datetime import date
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from debtflow.api.dependencies import get_today
from debtflow.api.v1.schemas import DebtCreate, DebtOut, PaymentIn, ReminderOut
from debtflow.infrastructure.database.session import get_db
from debtflow.infrastructure.database.repositories import DebtRepository, ReminderRepository, UserRepository
from debtflow.services.debts import DebtService

router = APIRouter()


@router.post("/debts", response_model=DebtOut, status_code=201)
def create_debt(body: DebtCreate, db: Session = Depends(get_db), today: date = Depends(get_today)):
    UserRepository(db).get(body.user_id)
    debt = DebtService(db).create_debt(
        user_id=body.user_id,
        customer_id=body.customer_id,
        amount=body.amount,
        invoice_number=body.invoice_number,
        due_date=body.due_date,
        today=today,
        currency=body.currency,
        invoice_date=body.invoice_date,
        description=body.description,
        notes=body.notes,
    )
    return DebtOut.model_validate(debt)


@router.get("/debts/{debt_id}", response_model=DebtOut)
def get_debt(debt_id: uuid.UUID, db: Session = Depends(get_db)):
    return DebtOut.model_validate(DebtRepository(db).get(debt_id))


@router.post("/debts/{debt_id}/payments", response_model=DebtOut)
def record_payment(
    debt_id: uuid.UUID,
    body: PaymentIn,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """
    Apply a payment event (or a negative correction) to a debt.

    Returns 422 invalid_payment if the paid amount would leave [0, amount].
    """
    debt = DebtService(db).record_payment(debt_id, body.amount, today, paid_date=body.paid_date)
    return DebtOut.model_validate(debt)


@router.get("/debts/{debt_id}/reminders", response_model=List[ReminderOut])
def list_reminders(debt_id: uuid.UUID, db: Session = Depends(get_db)):
    """Reminder history for a debt, newest first"""
    DebtRepository(db).get(debt_id)
    return [ReminderOut.model_validate(r) for r in ReminderRepository(db).list_by_debt(debt_id)]
