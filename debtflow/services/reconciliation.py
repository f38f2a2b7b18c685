"""Payment claim reconciliation"""

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from debtflow.domain.models import Channel, DebtStatus, ResponseStatus
from debtflow.domain.status import outstanding
from debtflow.domain.exceptions import AlreadyResolved, ClaimAlreadyPending, InvalidPayment
from debtflow.infrastructure.database.models import CustomerResponse, Debt
from debtflow.infrastructure.database.repositories import DebtRepository, ResponseRepository
from debtflow.infrastructure.observability.logging import log_reconciliation
from debtflow.infrastructure.observability.metrics import claim_resolution_counter
from debtflow.services.debts import DebtService
from debtflow.utils.date_utils import utc_now


class ReconciliationService:
    """Customer payment claims: intake, verification and rejection"""

    def __init__(self, db: Session):
        self.db = db
        self.debts = DebtRepository(db)
        self.responses = ResponseRepository(db)
        self.debt_service = DebtService(db)

    def submit_claim(
        self,
        debt_id: uuid.UUID,
        response_type: Channel,
        today: date,
        payment_date: Optional[date] = None,
        payment_reference: Optional[str] = None,
        payment_amount: Optional[Decimal] = None,
        comments: str = "",
    ) -> CustomerResponse:
        """
        Record a customer's claim that the debt was paid.

        Raises:
            ClaimAlreadyPending: An unresolved claim already exists for the debt
            InvalidPayment: Non-positive claimed amount, or the debt is already paid
        """
        debt = self.debts.get_for_update(debt_id)
        if self.responses.has_pending(debt.id):
            self.db.rollback()
            raise ClaimAlreadyPending(f"Debt {debt_id} already has a pending payment claim")
        if payment_amount is not None and payment_amount <= 0:
            self.db.rollback()
            raise InvalidPayment("Claimed amount must be positive")
        if debt.status == DebtStatus.PAID.value:
            self.db.rollback()
            raise InvalidPayment(f"Debt {debt_id} is already paid")

        response = self.responses.create(
            debt_id=debt.id,
            customer_id=debt.customer_id,
            response_type=response_type.value,
            response_date=utc_now(),
            payment_date=payment_date,
            payment_reference=payment_reference,
            payment_amount=payment_amount,
            comments=comments,
            status=ResponseStatus.PENDING.value,
        )
        self.debt_service.refresh_status(debt, today)
        self.db.commit()
        return response

    def verify(self, response_id: uuid.UUID, note: str, today: date) -> Debt:
        """
        Accept a claim and apply it as a payment event.

        A claim without an amount settles the outstanding balance; a claim
        without a date is dated today.

        Raises:
            AlreadyResolved: The claim is no longer pending
            InvalidPayment: The claimed amount exceeds what is still owed
        """
        response = self._pending(response_id)
        debt = self.debts.get_for_update(response.debt_id)

        amount = response.payment_amount
        if amount is None:
            amount = outstanding(debt.amount, debt.paid_amount)

        try:
            self.debt_service.apply_locked_payment(
                debt,
                amount,
                today,
                paid_date=response.payment_date,
                exclude_response_id=response.id,
            )
        except InvalidPayment:
            self.db.rollback()
            raise

        self._resolve(response, ResponseStatus.VERIFIED, note)
        self.db.commit()
        log_reconciliation(str(response.id), str(debt.id), ResponseStatus.VERIFIED.value, debt.status)
        return debt

    def reject(self, response_id: uuid.UUID, note: str, today: date) -> Debt:
        """
        Dismiss a claim; the debt's status is re-derived without a payment.

        Raises:
            AlreadyResolved: The claim is no longer pending
        """
        response = self._pending(response_id)
        debt = self.debts.get_for_update(response.debt_id)

        self._resolve(response, ResponseStatus.REJECTED, note)
        self.db.flush()
        self.debt_service.refresh_status(debt, today)
        self.db.commit()
        log_reconciliation(str(response.id), str(debt.id), ResponseStatus.REJECTED.value, debt.status)
        return debt

    def list_claims(self, user_id: str, status: Optional[ResponseStatus] = None) -> List[CustomerResponse]:
        return self.responses.list_for_user(user_id, status)

    def _pending(self, response_id: uuid.UUID) -> CustomerResponse:
        response = self.responses.get_for_update(response_id)
        if response.status != ResponseStatus.PENDING.value:
            self.db.rollback()
            raise AlreadyResolved(f"Customer response {response_id} is already {response.status}")
        return response

    def _resolve(self, response: CustomerResponse, status: ResponseStatus, note: str) -> None:
        response.status = status.value
        response.internal_notes = note or ""
        response.resolved_at = utc_now()
        claim_resolution_counter.labels(resolution=status.value).inc()
