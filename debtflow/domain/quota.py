"""Quota policy - which plans may use which channel, and how much"""

from datetime import date
from typing import Mapping, Optional
from debtflow.domain.models import Channel, Plan
from debtflow.domain.exceptions import PlanNotEligible

DEFAULT_PLAN_LIMITS = {
    Plan.FREE.value: 0,
    Plan.BASIC.value: 100,
    Plan.PRO.value: 1000,
    Plan.ENTERPRISE.value: 10000,
}


def is_metered(channel: Channel) -> bool:
    """Email is unmetered; only WhatsApp counts against the plan"""
    return channel == Channel.WHATSAPP


def monthly_limit(
    plan: str,
    override: Optional[int] = None,
    plan_limits: Mapping[str, int] = DEFAULT_PLAN_LIMITS,
) -> int:
    """WhatsApp messages allowed per calendar month"""
    if override is not None:
        return override
    return plan_limits.get(plan, 0)


def ensure_channel_eligible(plan: str, channel: Channel) -> None:
    """
    Raises:
        PlanNotEligible: WhatsApp on the free plan, whatever its numeric limit
    """
    if channel == Channel.WHATSAPP and plan == Plan.FREE.value:
        raise PlanNotEligible("WhatsApp reminders are not included in the free plan")


def period_for(day: date) -> str:
    """Quota period key: the calendar month"""
    return f"{day.year:04d}-{day.month:02d}"
