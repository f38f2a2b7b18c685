"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class DebtStatus(str, Enum):
    PENDING = "pending"
    OVERDUE = "overdue"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    PAYMENT_CLAIMED = "payment_claimed"


class Channel(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"


class ReminderStatus(str, Enum):
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class ResponseStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class Plan(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


@dataclass
class ReminderSettings:
    """Per-user automatic reminder configuration"""

    enabled: bool
    reminder_days: List[int]  # signed offsets: negative = before due date, positive = after
    default_channel: Channel = Channel.EMAIL
    default_template_id: Optional[uuid.UUID] = None


@dataclass
class DebtSnapshot:
    """The fields of a debt the scheduler needs"""

    debt_id: uuid.UUID
    customer_id: uuid.UUID
    due_date: date
    status: DebtStatus


@dataclass(frozen=True)
class DispatchRequest:
    """A reminder the scheduler wants sent today"""

    debt_id: uuid.UUID
    customer_id: uuid.UUID
    offset_days: int
    channel: Channel
    template_id: Optional[uuid.UUID] = None


@dataclass
class QuotaReservation:
    """One reserved unit of channel quota, to be committed or released"""

    user_id: str
    channel: Channel
    period: str  # "YYYY-MM"
    metered: bool


@dataclass
class RenderedMessage:
    """Template output ready for a channel sender"""

    subject: Optional[str]
    body: str


@dataclass
class SendResult:
    """Outcome of a successful dispatch"""

    reminder_id: uuid.UUID
    channel: Channel
    status: ReminderStatus
    message_id: Optional[str] = None


@dataclass
class TickReport:
    """Per-request outcomes of one scheduling tick"""

    user_id: str
    run_date: date
    sent: List[SendResult] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)
    denied: List[dict] = field(default_factory=list)
    skipped: List[dict] = field(default_factory=list)
    statuses_refreshed: int = 0
