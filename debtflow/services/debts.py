"""Debt lifecycle operations - every status change funnels through derive_status"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
from debtflow.domain.status import apply_payment, derive_status
from debtflow.domain.exceptions import InvalidPayment
from debtflow.infrastructure.database.models import Debt
from debtflow.infrastructure.database.repositories import CustomerRepository, DebtRepository, ResponseRepository
from debtflow.infrastructure.observability.metrics import record_status_change


class DebtService:
    def __init__(self, db: Session):
        self.db = db
        self.debts = DebtRepository(db)
        self.customers = CustomerRepository(db)
        self.responses = ResponseRepository(db)

    def create_debt(
        self,
        user_id: str,
        customer_id: uuid.UUID,
        amount: Decimal,
        invoice_number: str,
        due_date: date,
        today: date,
        currency: str = "ILS",
        invoice_date: Optional[date] = None,
        description: str = "",
        notes: str = "",
    ) -> Debt:
        """Register a new invoice obligation with its derived initial status"""
        if amount <= 0:
            raise InvalidPayment("Debt amount must be positive")

        customer = self.customers.get(customer_id)
        debt = self.debts.create(
            user_id=user_id,
            customer_id=customer.id,
            amount=amount,
            currency=currency,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            due_date=due_date,
            description=description,
            notes=notes,
            paid_amount=Decimal("0"),
            status=derive_status(amount, Decimal("0"), due_date, False, today).value,
        )
        self.db.commit()
        return debt

    def record_payment(
        self,
        debt_id: uuid.UUID,
        delta: Decimal,
        today: date,
        paid_date: Optional[date] = None,
    ) -> Debt:
        """
        Apply a payment event to a debt.

        The row is locked and re-read first; the delta is applied to the
        committed paid amount, never to a value read earlier by the caller.

        Raises:
            InvalidPayment: If the paid amount would leave [0, amount]
        """
        debt = self.debts.get_for_update(debt_id)
        try:
            self.apply_locked_payment(debt, delta, today, paid_date)
        except InvalidPayment:
            self.db.rollback()
            raise
        self.db.commit()
        return debt

    def apply_locked_payment(
        self,
        debt: Debt,
        delta: Decimal,
        today: date,
        paid_date: Optional[date] = None,
        exclude_response_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Apply a payment to a debt the caller already holds the lock on"""
        before = debt.status
        outcome = apply_payment(
            amount=debt.amount,
            current_paid=debt.paid_amount,
            delta=delta,
            due_date=debt.due_date,
            has_pending_claim=self.responses.has_pending(debt.id, exclude_id=exclude_response_id),
            today=today,
            paid_date=paid_date,
            current_paid_date=debt.paid_date,
        )
        debt.paid_amount = outcome.paid_amount
        debt.paid_date = outcome.paid_date
        debt.status = outcome.status.value
        record_status_change(before, debt.status)

    def refresh_status(self, debt: Debt, today: date) -> bool:
        """Re-derive status without a payment; returns True if it changed"""
        before = debt.status
        debt.status = derive_status(
            debt.amount,
            debt.paid_amount,
            debt.due_date,
            self.responses.has_pending(debt.id),
            today,
        ).value
        record_status_change(before, debt.status)
        return before != debt.status

    def refresh_open_debts(self, user_id: str, today: date) -> int:
        """Bring every unpaid debt's status up to date (e.g. pending -> overdue)"""
        changed = sum(1 for debt in self.debts.list_open_by_user(user_id) if self.refresh_status(debt, today))
        self.db.commit()
        return changed
