"""SQLAlchemy ORM models for the collection core"""

import uuid
from decimal import Decimal
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Numeric,
    Text,
    JSON,
    Uuid,
    UniqueConstraint,
    Index,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

MONEY = Numeric(12, 2, asdecimal=True)

LIVE_REMINDER = "offset_days IS NOT NULL AND status <> 'failed'"


class UserAccount(Base):
    """Tenant owning customers, debts and templates"""

    __tablename__ = "user_account"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False, default="")
    company_name = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=True)
    plan = Column(String(20), nullable=False, default="free")
    whatsapp_quota_override = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Customer(Base):
    __tablename__ = "customer"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("user_account.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    debts = relationship("Debt", back_populates="customer")


class Debt(Base):
    """Invoice obligation; status is always derived, never set by hand"""

    __tablename__ = "debt"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("user_account.id"), nullable=False, index=True)
    customer_id = Column(Uuid, ForeignKey("customer.id"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    currency = Column(String(3), nullable=False, default="ILS")
    description = Column(Text, nullable=False, default="")
    invoice_number = Column(Text, nullable=False)
    invoice_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=False)
    paid_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    paid_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="debts")
    reminders = relationship("Reminder", back_populates="debt", order_by="Reminder.sent_at")
    responses = relationship("CustomerResponse", back_populates="debt")


class Template(Base):
    __tablename__ = "template"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("user_account.id"), nullable=False, index=True)
    name = Column(Text, nullable=False, default="")
    channel = Column(String(20), nullable=False)
    subject = Column(Text, nullable=True)
    body = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class Reminder(Base):
    """Log of reminder attempts; a scheduled row is written before the send and finalised after it"""

    __tablename__ = "reminder"
    __table_args__ = (
        # one live reminder per (debt, offset); failed attempts free the slot
        Index(
            "uq_reminder_debt_offset_live",
            "debt_id",
            "offset_days",
            unique=True,
            postgresql_where=text(LIVE_REMINDER),
            sqlite_where=text(LIVE_REMINDER),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    debt_id = Column(Uuid, ForeignKey("debt.id"), nullable=False, index=True)
    customer_id = Column(Uuid, ForeignKey("customer.id"), nullable=False)
    channel = Column(String(20), nullable=False)
    template_id = Column(Uuid, ForeignKey("template.id"), nullable=True)
    offset_days = Column(Integer, nullable=True)  # null for manual sends
    sent_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False)
    message_id = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    response = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    debt = relationship("Debt", back_populates="reminders")


class CustomerResponse(Base):
    """Customer's claim that a debt was paid, awaiting staff review"""

    __tablename__ = "customer_response"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    debt_id = Column(Uuid, ForeignKey("debt.id"), nullable=False, index=True)
    customer_id = Column(Uuid, ForeignKey("customer.id"), nullable=False)
    response_type = Column(String(20), nullable=False)
    response_date = Column(DateTime(timezone=True), nullable=False)
    payment_date = Column(Date, nullable=True)
    payment_reference = Column(Text, nullable=True)
    payment_amount = Column(MONEY, nullable=True)
    comments = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="pending")
    internal_notes = Column(Text, nullable=False, default="")
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    debt = relationship("Debt", back_populates="responses")


class ReminderSettingsRecord(Base):
    __tablename__ = "reminder_settings"

    user_id = Column(Text, ForeignKey("user_account.id"), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=False)
    reminder_days = Column(JSON, nullable=False, default=list)
    default_template_id = Column(Uuid, ForeignKey("template.id"), nullable=True)
    default_channel = Column(String(20), nullable=False, default="email")


class QuotaCounter(Base):
    """Per user, channel and calendar month send counter"""

    __tablename__ = "quota_counter"
    __table_args__ = (UniqueConstraint("user_id", "channel", "period", name="uq_quota_user_channel_period"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    channel = Column(String(20), nullable=False)
    period = Column(String(7), nullable=False)  # YYYY-MM
    limit_count = Column(Integer, nullable=False)
    used = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
