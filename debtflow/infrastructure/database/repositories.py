"""Data access layer for collection entities"""

import uuid
from datetime import datetime
from typing import List, Optional, Set, Tuple
from sqlalchemy.orm import Session
from debtflow.infrastructure.database.models import (
    UserAccount,
    Customer,
    Debt,
    Template,
    Reminder,
    CustomerResponse,
    ReminderSettingsRecord,
)
from debtflow.domain.models import (
    Channel,
    DebtSnapshot,
    DebtStatus,
    ReminderSettings,
    ReminderStatus,
    ResponseStatus,
)
from debtflow.domain.exceptions import NotFound


class UserRepository:
    """Tenant accounts and plan lookup"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> UserAccount:
        user = self.db.get(UserAccount, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def create(self, user_id: str, name: str = "", company_name: str = "", plan: str = "free") -> UserAccount:
        user = UserAccount(id=user_id, name=name, company_name=company_name, plan=plan)
        self.db.add(user)
        self.db.flush()
        return user

    def get_plan(self, user_id: str) -> Tuple[str, Optional[int]]:
        """Current plan tier and WhatsApp override limit"""
        user = self.get(user_id)
        return user.plan, user.whatsapp_quota_override

    def list_ids(self) -> List[str]:
        return [row[0] for row in self.db.query(UserAccount.id).order_by(UserAccount.id).all()]


class CustomerRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, name: str, email: Optional[str], phone: Optional[str], notes: str = "") -> Customer:
        customer = Customer(user_id=user_id, name=name, email=email, phone=phone, notes=notes)
        self.db.add(customer)
        self.db.flush()
        return customer

    def get(self, customer_id: uuid.UUID) -> Customer:
        customer = self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found")
        return customer


class DebtRepository:
    """Repository for debts"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> Debt:
        debt = Debt(**fields)
        self.db.add(debt)
        self.db.flush()
        return debt

    def get(self, debt_id: uuid.UUID) -> Debt:
        debt = self.db.get(Debt, debt_id)
        if debt is None:
            raise NotFound(f"Debt {debt_id} not found")
        return debt

    def get_for_update(self, debt_id: uuid.UUID) -> Debt:
        """
        Lock the debt row and reload it.

        Concurrent payment events on the same debt queue behind the lock and
        see the committed paid_amount instead of a stale copy.
        """
        debt = (
            self.db.query(Debt)
            .filter(Debt.id == debt_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if debt is None:
            raise NotFound(f"Debt {debt_id} not found")
        return debt

    def list_open_by_user(self, user_id: str) -> List[Debt]:
        """Debts that are not fully paid"""
        return (
            self.db.query(Debt)
            .filter(Debt.user_id == user_id, Debt.status != DebtStatus.PAID.value)
            .order_by(Debt.due_date)
            .all()
        )

    def snapshots_for_user(self, user_id: str) -> List[DebtSnapshot]:
        return [
            DebtSnapshot(
                debt_id=d.id,
                customer_id=d.customer_id,
                due_date=d.due_date,
                status=DebtStatus(d.status),
            )
            for d in self.list_open_by_user(user_id)
        ]


class TemplateRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: str, channel: Optional[Channel] = None) -> List[Template]:
        query = self.db.query(Template).filter(Template.user_id == user_id)
        if channel is not None:
            query = query.filter(Template.channel == channel.value)
        return query.order_by(Template.created_at).all()

    def create(
        self,
        user_id: str,
        channel: Channel,
        body: str,
        name: str = "",
        subject: Optional[str] = None,
        is_default: bool = False,
    ) -> Template:
        """Create a template; a new default replaces the previous one for the channel"""
        if is_default:
            self.clear_default(user_id, channel)
        template = Template(
            user_id=user_id,
            channel=channel.value,
            name=name,
            subject=subject if channel == Channel.EMAIL else None,
            body=body,
            is_default=is_default,
        )
        self.db.add(template)
        self.db.flush()
        return template

    def clear_default(self, user_id: str, channel: Channel) -> None:
        (
            self.db.query(Template)
            .filter(
                Template.user_id == user_id,
                Template.channel == channel.value,
                Template.is_default.is_(True),
            )
            .update({Template.is_default: False}, synchronize_session="fetch")
        )


class ReminderRepository:
    """Append-only reminder log"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        debt_id: uuid.UUID,
        customer_id: uuid.UUID,
        channel: Channel,
        template_id: Optional[uuid.UUID],
        status: ReminderStatus,
        sent_at: datetime,
        offset_days: Optional[int] = None,
        message_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Reminder:
        reminder = Reminder(
            user_id=user_id,
            debt_id=debt_id,
            customer_id=customer_id,
            channel=channel.value,
            template_id=template_id,
            offset_days=offset_days,
            sent_at=sent_at,
            status=status.value,
            message_id=message_id,
            error=error,
        )
        self.db.add(reminder)
        self.db.flush()
        return reminder

    def list_by_debt(self, debt_id: uuid.UUID) -> List[Reminder]:
        return (
            self.db.query(Reminder)
            .filter(Reminder.debt_id == debt_id)
            .order_by(Reminder.sent_at.desc())
            .all()
        )

    def fired_offsets(self, user_id: str) -> Set[Tuple[uuid.UUID, int]]:
        """(debt_id, offset) pairs held by a reminder that is in flight or did not fail"""
        rows = (
            self.db.query(Reminder.debt_id, Reminder.offset_days)
            .filter(
                Reminder.user_id == user_id,
                Reminder.offset_days.isnot(None),
                Reminder.status != ReminderStatus.FAILED.value,
            )
            .all()
        )
        return {(debt_id, offset) for debt_id, offset in rows}

    def has_fired(self, debt_id: uuid.UUID, offset_days: int) -> bool:
        return (
            self.db.query(Reminder.id)
            .filter(
                Reminder.debt_id == debt_id,
                Reminder.offset_days == offset_days,
                Reminder.status != ReminderStatus.FAILED.value,
            )
            .first()
            is not None
        )


class ResponseRepository:
    """Customer payment claims"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> CustomerResponse:
        response = CustomerResponse(**fields)
        self.db.add(response)
        self.db.flush()
        return response

    def get_for_update(self, response_id: uuid.UUID) -> CustomerResponse:
        response = (
            self.db.query(CustomerResponse)
            .filter(CustomerResponse.id == response_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if response is None:
            raise NotFound(f"Customer response {response_id} not found")
        return response

    def has_pending(self, debt_id: uuid.UUID, exclude_id: Optional[uuid.UUID] = None) -> bool:
        query = self.db.query(CustomerResponse).filter(
            CustomerResponse.debt_id == debt_id,
            CustomerResponse.status == ResponseStatus.PENDING.value,
        )
        if exclude_id is not None:
            query = query.filter(CustomerResponse.id != exclude_id)
        return query.first() is not None

    def list_for_user(self, user_id: str, status: Optional[ResponseStatus] = None) -> List[CustomerResponse]:
        query = (
            self.db.query(CustomerResponse)
            .join(Debt, Debt.id == CustomerResponse.debt_id)
            .filter(Debt.user_id == user_id)
        )
        if status is not None:
            query = query.filter(CustomerResponse.status == status.value)
        return query.order_by(CustomerResponse.response_date.desc()).all()


class SettingsRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> ReminderSettings:
        """Stored settings, or disabled settings when the user never saved any"""
        record = self.db.get(ReminderSettingsRecord, user_id)
        if record is None:
            return ReminderSettings(enabled=False, reminder_days=[])
        return ReminderSettings(
            enabled=record.enabled,
            reminder_days=list(record.reminder_days or []),
            default_channel=Channel(record.default_channel),
            default_template_id=record.default_template_id,
        )

    def save(self, user_id: str, reminder_settings: ReminderSettings) -> ReminderSettingsRecord:
        record = self.db.get(ReminderSettingsRecord, user_id)
        if record is None:
            record = ReminderSettingsRecord(user_id=user_id)
            self.db.add(record)
        record.enabled = reminder_settings.enabled
        record.reminder_days = sorted(set(reminder_settings.reminder_days))
        record.default_channel = reminder_settings.default_channel.value
        record.default_template_id = reminder_settings.default_template_id
        self.db.flush()
        return record
