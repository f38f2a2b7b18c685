"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, UUID4
from debtflow.domain.models import Channel, ResponseStatus


class CustomerCreate(BaseModel):
    """Request body for POST /v1/customers"""

    user_id: str = Field(..., min_length=1, description="Owning user (tenant)")
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: str = ""


class CustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    user_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: str


class TemplateCreate(BaseModel):
    """Request body for POST /v1/templates"""

    user_id: str = Field(..., min_length=1)
    channel: Channel
    name: str = ""
    subject: Optional[str] = None
    body: str = Field(..., min_length=1)
    is_default: bool = False


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    channel: Channel
    name: str
    subject: Optional[str] = None
    body: str
    is_default: bool


class ReminderSettingsIn(BaseModel):
    """Request body for PUT /v1/settings/reminders"""

    user_id: str = Field(..., min_length=1)
    enabled: bool
    reminder_days: List[int] = Field(
        default_factory=list,
        description="Signed day offsets from the due date: negative = before, positive = after",
    )
    default_channel: Channel = Channel.EMAIL
    default_template_id: Optional[UUID4] = None


class ReminderSettingsOut(BaseModel):
    user_id: str
    enabled: bool
    reminder_days: List[int]
    default_channel: Channel
    default_template_id: Optional[UUID4] = None


class DebtCreate(BaseModel):
    """Request body for POST /v1/debts"""

    user_id: str = Field(..., min_length=1)
    customer_id: UUID4
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    currency: str = Field("ILS", min_length=3, max_length=3)
    invoice_number: str = Field(..., min_length=1)
    invoice_date: Optional[date] = None
    due_date: date
    description: str = ""
    notes: str = ""


class DebtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    user_id: str
    customer_id: UUID4
    amount: Decimal
    currency: str
    invoice_number: str
    invoice_date: Optional[date] = None
    due_date: date
    paid_amount: Decimal
    paid_date: Optional[date] = None
    status: str
    description: str
    notes: str


class PaymentIn(BaseModel):
    """Request body for POST /v1/debts/{debt_id}/payments"""

    amount: Decimal = Field(..., decimal_places=2, description="Signed delta; negative values are corrections")
    paid_date: Optional[date] = None


class SendReminderRequest(BaseModel):
    """Request body for POST /v1/reminders"""

    debt_id: UUID4
    channel: Channel
    template_id: Optional[UUID4] = None


class SendReminderResponse(BaseModel):
    reminder_id: str
    channel: Channel
    status: str
    message_id: Optional[str] = None


class ReminderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    debt_id: UUID4
    channel: Channel
    template_id: Optional[UUID4] = None
    offset_days: Optional[int] = None
    sent_at: datetime
    status: str
    message_id: Optional[str] = None
    error: Optional[str] = None


class TickOutcome(BaseModel):
    debt_id: str
    offset_days: int
    channel: str
    reason: Optional[str] = None
    detail: Optional[str] = None
    reminder_id: Optional[str] = None


class TickReportOut(BaseModel):
    """Response item for POST /v1/reminders/run"""

    user_id: str
    run_date: date
    statuses_refreshed: int
    sent: List[SendReminderResponse]
    failed: List[TickOutcome]
    denied: List[TickOutcome]
    skipped: List[TickOutcome]


class ClaimCreate(BaseModel):
    """Request body for POST /v1/debts/{debt_id}/responses"""

    response_type: Channel
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None
    payment_amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    comments: str = ""


class ResolutionIn(BaseModel):
    """Request body for verify / reject"""

    note: str = ""


class ClaimOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    debt_id: UUID4
    customer_id: UUID4
    response_type: Channel
    response_date: datetime
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None
    payment_amount: Optional[Decimal] = None
    comments: str
    status: ResponseStatus
    internal_notes: str


class QuotaOut(BaseModel):
    user_id: str
    channel: Channel
    period: str
    remaining: Optional[int] = Field(None, description="null for unmetered channels")


class QuotaResetRequest(BaseModel):
    period: str = Field(..., pattern=r"^\d{4}-\d{2}$")


class QuotaResetResponse(BaseModel):
    period: str
    counters_reset: int
