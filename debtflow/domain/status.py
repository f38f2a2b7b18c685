"""Debt status machine - the single derivation point for a debt's status"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from debtflow.domain.models import DebtStatus
from debtflow.domain.exceptions import InvalidPayment


@dataclass
class PaymentOutcome:
    """Debt fields after a payment event"""

    paid_amount: Decimal
    paid_date: Optional[date]
    status: DebtStatus


def derive_status(
    amount: Decimal,
    paid_amount: Decimal,
    due_date: date,
    has_pending_claim: bool,
    today: date,
) -> DebtStatus:
    """
    Derive a debt's status from its payment facts.

    Rules are evaluated in priority order:
    1. nothing paid and an unverified claim exists -> payment_claimed
    2. fully paid                                  -> paid
    3. partly paid                                 -> partially_paid
    4. due date has passed                         -> overdue
    5. otherwise                                   -> pending
    """
    if paid_amount == 0 and has_pending_claim:
        return DebtStatus.PAYMENT_CLAIMED
    if paid_amount >= amount:
        return DebtStatus.PAID
    if paid_amount > 0:
        return DebtStatus.PARTIALLY_PAID
    if due_date < today:
        return DebtStatus.OVERDUE
    return DebtStatus.PENDING


def apply_payment(
    amount: Decimal,
    current_paid: Decimal,
    delta: Decimal,
    due_date: date,
    has_pending_claim: bool,
    today: date,
    paid_date: Optional[date] = None,
    current_paid_date: Optional[date] = None,
) -> PaymentOutcome:
    """
    Apply a signed payment delta and re-derive status.

    Negative deltas are corrections. paid_date is cleared once nothing
    remains paid.

    Raises:
        InvalidPayment: If the new paid amount falls outside [0, amount]
    """
    new_paid = current_paid + delta
    if new_paid < 0:
        raise InvalidPayment(f"Paid amount cannot drop below 0 (would be {new_paid})")
    if new_paid > amount:
        raise InvalidPayment(f"Paid amount {new_paid} would exceed debt amount {amount}")

    if new_paid == 0:
        new_paid_date = None
    elif delta != 0:
        new_paid_date = paid_date or today
    else:
        new_paid_date = current_paid_date

    return PaymentOutcome(
        paid_amount=new_paid,
        paid_date=new_paid_date,
        status=derive_status(amount, new_paid, due_date, has_pending_claim, today),
    )


def outstanding(amount: Decimal, paid_amount: Decimal) -> Decimal:
    """Amount still owed"""
    return amount - paid_amount
