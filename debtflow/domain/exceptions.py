"""Domain-specific exceptions"""

import uuid
from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "domain_error"


class NotFound(DomainException):
    """Referenced entity does not exist"""

    code = "not_found"


class InvalidPayment(DomainException):
    """Payment event would push paid amount outside [0, amount]"""

    code = "invalid_payment"


class NoTemplateConfigured(DomainException):
    """No explicit or default template exists for the channel"""

    code = "no_template_configured"


class MissingRecipient(DomainException):
    """Customer has no usable address for the channel"""

    code = "missing_recipient"


class QuotaExceeded(DomainException):
    """Monthly channel quota is used up"""

    code = "quota_exceeded"


class PlanNotEligible(DomainException):
    """User's plan does not include the channel"""

    code = "plan_not_eligible"


class AlreadyResolved(DomainException):
    """Customer response was already verified or rejected"""

    code = "already_resolved"


class ClaimAlreadyPending(DomainException):
    """Debt already has an unresolved payment claim"""

    code = "claim_already_pending"


class SendFailed(DomainException):
    """Channel sender returned an error or timed out"""

    code = "send_failed"

    def __init__(self, message: str, reminder_id: Optional[uuid.UUID] = None):
        super().__init__(message)
        self.reminder_id = reminder_id


class ReminderAlreadySent(DomainException):
    """A live reminder already holds this debt's scheduled offset"""

    code = "reminder_already_sent"
