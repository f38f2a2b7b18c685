"""Dispatch coordinator - template, quota, channel sender and reminder log in one flow"""

import asyncio
import time
import uuid
from datetime import date
from typing import Mapping, Optional, Protocol
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from debtflow.config import settings
from debtflow.domain.models import Channel, ReminderStatus, RenderedMessage, SendResult
from debtflow.domain.templates import (
    build_substitutions,
    is_valid_email,
    render,
    resolve_template,
    sanitize_body,
    sanitize_subject,
)
from debtflow.domain.exceptions import MissingRecipient, ReminderAlreadySent, SendFailed
from debtflow.infrastructure.database.models import Customer, Debt, Reminder, Template, UserAccount
from debtflow.infrastructure.database.quota import QuotaTracker
from debtflow.infrastructure.database.repositories import (
    DebtRepository,
    ReminderRepository,
    TemplateRepository,
    UserRepository,
)
from debtflow.infrastructure.observability.logging import log_dispatch
from debtflow.infrastructure.observability.metrics import record_dispatch
from debtflow.utils.date_utils import utc_now


class ChannelSender(Protocol):
    async def send(self, to: str, subject: Optional[str], body: str) -> str:
        ...


def recipient_for(customer: Customer, channel: Channel) -> str:
    """
    Address the channel delivers to.

    Raises:
        MissingRecipient: No phone for WhatsApp, or no valid email address
    """
    if channel == Channel.WHATSAPP:
        phone = (customer.phone or "").strip()
        if not phone:
            raise MissingRecipient(f"Customer {customer.id} has no phone number for WhatsApp")
        return phone

    email = (customer.email or "").strip()
    if not is_valid_email(email):
        raise MissingRecipient(f"Customer {customer.id} has no valid email address")
    return email


def render_message(template: Template, debt: Debt, customer: Customer, user: UserAccount) -> RenderedMessage:
    values = build_substitutions(
        customer_name=customer.name,
        amount=debt.amount,
        currency=debt.currency,
        invoice_number=debt.invoice_number,
        due_date=debt.due_date,
        user_name=user.name,
        company_name=user.company_name,
        date_pattern=settings.due_date_format,
    )
    subject = None
    if template.channel == Channel.EMAIL.value:
        subject = sanitize_subject(render(template.subject or "", values), settings.max_subject_length)
    body = sanitize_body(render(template.body, values), settings.max_body_length)
    return RenderedMessage(subject=subject, body=body)


def failure_reason(channel: Channel, error: Exception, timeout: float) -> str:
    """Readable reason stored on a failed reminder"""
    if isinstance(error, SendFailed):
        return str(error)
    if isinstance(error, asyncio.TimeoutError):
        return f"{channel.value} sender timed out after {timeout}s"
    return f"{channel.value} sender error: {type(error).__name__}: {error}"


class DispatchCoordinator:
    """
    Sends one reminder for one debt.

    Shared by manual sends and the scheduling tick. Precondition failures
    (no template, no recipient, no quota, offset already taken) raise before
    anything is recorded. The reminder row is written before the sender is
    called; for scheduled sends it claims the (debt, offset) slot so that
    concurrent ticks cannot both send. Any sender error is recorded as a
    failed reminder and raised as SendFailed without consuming quota.
    """

    def __init__(
        self,
        db: Session,
        senders: Mapping[Channel, ChannelSender],
        quota: QuotaTracker | None = None,
        timeout: float | None = None,
    ):
        self.db = db
        self.senders = senders
        self.quota = quota or QuotaTracker(db)
        self.timeout = timeout or settings.sender_timeout_seconds
        self.debts = DebtRepository(db)
        self.templates = TemplateRepository(db)
        self.reminders = ReminderRepository(db)
        self.users = UserRepository(db)

    async def send(
        self,
        debt: Debt,
        customer: Customer,
        channel: Channel,
        today: date,
        template_id: Optional[uuid.UUID] = None,
        offset_days: Optional[int] = None,
    ) -> SendResult:
        start_time = time.time()
        user_id, debt_id, customer_id = debt.user_id, debt.id, customer.id

        template = resolve_template(self.templates.list_for_user(user_id, channel), channel, template_id)
        template_ref = template.id
        recipient = recipient_for(customer, channel)
        user = self.users.get(user_id)
        message = render_message(template, debt, customer, user)

        reservation = self.quota.check_and_reserve(user_id, channel, today)
        try:
            reminder = self._open_reminder(user_id, debt_id, customer_id, channel, template_ref, offset_days)
        except ReminderAlreadySent:
            self.quota.release(reservation)
            raise
        reminder_id = reminder.id

        try:
            message_id = await asyncio.wait_for(
                self.senders[channel].send(recipient, message.subject, message.body),
                timeout=self.timeout,
            )
        except Exception as e:
            error = failure_reason(channel, e, self.timeout)
            self.quota.release(reservation)
            reminder.status = ReminderStatus.FAILED.value
            reminder.error = error
            self.db.commit()
            record_dispatch(channel.value, sent=False, scheduled=offset_days is not None)
            log_dispatch(
                user_id, str(debt_id), channel.value, "failed",
                reminder_id=str(reminder_id), offset_days=offset_days, error=error,
                duration_ms=(time.time() - start_time) * 1000,
            )
            raise SendFailed(error, reminder_id=reminder_id) from e

        self.quota.commit(reservation)
        reminder.status = ReminderStatus.SENT.value
        reminder.message_id = message_id
        self.db.commit()

        record_dispatch(channel.value, sent=True, scheduled=offset_days is not None)
        log_dispatch(
            user_id, str(debt_id), channel.value, "sent",
            reminder_id=str(reminder_id), offset_days=offset_days,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return SendResult(
            reminder_id=reminder_id,
            channel=channel,
            status=ReminderStatus.SENT,
            message_id=message_id,
        )

    def _open_reminder(
        self,
        user_id: str,
        debt_id: uuid.UUID,
        customer_id: uuid.UUID,
        channel: Channel,
        template_id: uuid.UUID,
        offset_days: Optional[int],
    ) -> Reminder:
        """
        Commit a reminder in the sending state.

        Scheduled offsets are re-checked under the debt's row lock; the
        partial unique index on live (debt, offset) rows backs this up where
        the database has no row locks.

        Raises:
            ReminderAlreadySent: Another dispatch already holds the offset
        """
        if offset_days is not None:
            self.debts.get_for_update(debt_id)
            if self.reminders.has_fired(debt_id, offset_days):
                self.db.rollback()
                raise ReminderAlreadySent(f"Offset {offset_days} was already sent for debt {debt_id}")

        try:
            reminder = self.reminders.create(
                user_id=user_id,
                debt_id=debt_id,
                customer_id=customer_id,
                channel=channel,
                template_id=template_id,
                status=ReminderStatus.SENDING,
                sent_at=utc_now(),
                offset_days=offset_days,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ReminderAlreadySent(f"Offset {offset_days} was already sent for debt {debt_id}") from e
        return reminder
