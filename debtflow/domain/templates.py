"""Template rendering for reminder subjects and bodies"""

import re
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional, Protocol
from debtflow.domain.models import Channel
from debtflow.domain.exceptions import NoTemplateConfigured

# {{identifier}} is the stored-template contract; do not change
PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

PLACEHOLDER_KEYS = (
    "customerName",
    "amount",
    "currency",
    "invoiceNumber",
    "dueDate",
    "userName",
    "companyName",
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SCRIPT_PATTERN = re.compile(r"<script[\s\S]*?>[\s\S]*?</script>", re.IGNORECASE)


class TemplateLike(Protocol):
    id: uuid.UUID
    channel: str
    is_default: bool


def render(text: str, values: Mapping[str, object]) -> str:
    """
    Replace every {{key}} with str(values[key]).

    Placeholders without a value are left verbatim so a half-configured
    template still sends.
    """
    if not text:
        return text

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        return str(values[key])

    return PLACEHOLDER_PATTERN.sub(_substitute, text)


def format_amount(amount: Decimal) -> str:
    """Plain numeric string: 1500.00 -> "1500", 1500.50 -> "1500.5" """
    normalized = Decimal(amount).normalize()
    return format(normalized, "f")


def format_due_date(value: date, pattern: str = "{day}.{month}.{year}") -> str:
    return pattern.format(day=value.day, month=value.month, year=value.year)


def build_substitutions(
    customer_name: str,
    amount: Decimal,
    currency: str,
    invoice_number: str,
    due_date: date,
    user_name: str,
    company_name: str,
    date_pattern: str = "{day}.{month}.{year}",
) -> Dict[str, str]:
    """Build the fixed placeholder map for a debt/customer/user triple"""
    return {
        "customerName": customer_name or "",
        "amount": format_amount(amount),
        "currency": currency or "",
        "invoiceNumber": invoice_number or "",
        "dueDate": format_due_date(due_date, date_pattern),
        "userName": user_name or "",
        "companyName": company_name or "",
    }


def resolve_template(
    templates: Iterable[TemplateLike],
    channel: Channel,
    template_id: Optional[uuid.UUID] = None,
) -> TemplateLike:
    """
    Pick the template for a send.

    Explicit id first (it must belong to the channel), then the channel's
    default template.

    Raises:
        NoTemplateConfigured: If neither exists
    """
    candidates = [t for t in templates if t.channel == channel.value]

    if template_id is not None:
        for template in candidates:
            if template.id == template_id:
                return template
        raise NoTemplateConfigured(f"Template {template_id} not found for channel {channel.value}")

    for template in candidates:
        if template.is_default:
            return template

    raise NoTemplateConfigured(f"No default {channel.value} template configured")


def is_valid_email(address: Optional[str]) -> bool:
    return bool(address) and EMAIL_PATTERN.match(address) is not None


def sanitize_subject(subject: str, max_length: int = 255) -> str:
    """Strip header-breaking newlines and cap length"""
    if not subject:
        return ""
    return re.sub(r"[\r\n]", "", subject)[:max_length]


def sanitize_body(body: str, max_length: int = 5000) -> str:
    """Drop <script> blocks and cap length"""
    return SCRIPT_PATTERN.sub("", body or "")[:max_length]
