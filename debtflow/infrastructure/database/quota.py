"""Quota tracker backed by per-period counter rows"""

import logging
from datetime import date
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from debtflow.config import settings
from debtflow.domain.models import Channel, Plan, QuotaReservation
from debtflow.domain.quota import ensure_channel_eligible, is_metered, monthly_limit, period_for
from debtflow.domain.exceptions import PlanNotEligible, QuotaExceeded
from debtflow.infrastructure.database.models import QuotaCounter, UserAccount
from debtflow.infrastructure.database.repositories import UserRepository
from debtflow.infrastructure.observability.metrics import quota_denials_counter

logger = logging.getLogger(__name__)


class QuotaTracker:
    """
    Per-user, per-channel monthly send counter.

    Every mutation runs as its own short transaction so that a reservation
    is visible to concurrent dispatches as soon as it is taken.
    """

    def __init__(self, db: Session, plan_limits: Optional[dict] = None):
        self.db = db
        self.users = UserRepository(db)
        self.plan_limits = plan_limits or settings.plan_limits

    def check_and_reserve(self, user_id: str, channel: Channel, today: date) -> QuotaReservation:
        """
        Reserve one unit of quota.

        The check and the reservation are a single conditional UPDATE, so two
        dispatches racing for the last unit cannot both win.

        Raises:
            PlanNotEligible: WhatsApp on the free plan
            QuotaExceeded: No units left this month
        """
        period = period_for(today)
        if not is_metered(channel):
            return QuotaReservation(user_id=user_id, channel=channel, period=period, metered=False)

        plan, override = self.users.get_plan(user_id)
        try:
            ensure_channel_eligible(plan, channel)
        except PlanNotEligible:
            quota_denials_counter.labels(reason="plan_not_eligible").inc()
            raise

        limit = monthly_limit(plan, override, self.plan_limits)
        if self._try_reserve(user_id, channel, period, limit):
            return QuotaReservation(user_id=user_id, channel=channel, period=period, metered=True)

        if self._get_counter(user_id, channel, period) is None:
            self._create_counter(user_id, channel, period, limit)
            if self._try_reserve(user_id, channel, period, limit):
                return QuotaReservation(user_id=user_id, channel=channel, period=period, metered=True)

        quota_denials_counter.labels(reason="quota_exceeded").inc()
        logger.warning(
            "Quota exhausted",
            extra={"user_id": user_id, "channel": channel.value, "period": period},
        )
        raise QuotaExceeded(f"Monthly {channel.value} quota exhausted for {period}")

    def commit(self, reservation: QuotaReservation) -> None:
        """Turn a reserved unit into a used one"""
        if not reservation.metered:
            return
        self._apply(
            reservation,
            used=QuotaCounter.used + 1,
            reserved=QuotaCounter.reserved - 1,
        )

    def release(self, reservation: QuotaReservation) -> None:
        """Give a reserved unit back after a failed send"""
        if not reservation.metered:
            return
        self._apply(reservation, reserved=QuotaCounter.reserved - 1)

    def remaining(self, user_id: str, channel: Channel, today: date) -> Optional[int]:
        """Units left this month; None for unmetered channels"""
        if not is_metered(channel):
            return None
        plan, override = self.users.get_plan(user_id)
        if plan == Plan.FREE.value:
            return 0
        limit = monthly_limit(plan, override, self.plan_limits)
        counter = self._get_counter(user_id, channel, period_for(today))
        if counter is None:
            return limit
        return max(limit - counter.used - counter.reserved, 0)

    def monthly_reset(self, period: str) -> int:
        """
        Start a period from scratch for every user.

        Counts go to zero and limits are refreshed from each user's current
        plan. Returns the number of counters written.
        """
        written = 0
        for user in self.db.query(UserAccount).all():
            limit = monthly_limit(user.plan, user.whatsapp_quota_override, self.plan_limits)
            counter = self._get_counter(user.id, Channel.WHATSAPP, period)
            if counter is None:
                self.db.add(
                    QuotaCounter(
                        user_id=user.id,
                        channel=Channel.WHATSAPP.value,
                        period=period,
                        limit_count=limit,
                        used=0,
                        reserved=0,
                    )
                )
            else:
                counter.limit_count = limit
                counter.used = 0
                counter.reserved = 0
            written += 1
        self.db.commit()
        logger.info("Quota period reset", extra={"period": period, "counters": written})
        return written

    def _try_reserve(self, user_id: str, channel: Channel, period: str, limit: int) -> bool:
        """Take one unit against the plan's current limit, which is written back to the row"""
        stmt = (
            update(QuotaCounter)
            .where(
                QuotaCounter.user_id == user_id,
                QuotaCounter.channel == channel.value,
                QuotaCounter.period == period,
                QuotaCounter.used + QuotaCounter.reserved < limit,
            )
            .values(reserved=QuotaCounter.reserved + 1, limit_count=limit)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def _get_counter(self, user_id: str, channel: Channel, period: str) -> Optional[QuotaCounter]:
        return (
            self.db.query(QuotaCounter)
            .filter(
                QuotaCounter.user_id == user_id,
                QuotaCounter.channel == channel.value,
                QuotaCounter.period == period,
            )
            .populate_existing()
            .first()
        )

    def _create_counter(self, user_id: str, channel: Channel, period: str, limit: int) -> None:
        self.db.add(
            QuotaCounter(
                user_id=user_id,
                channel=channel.value,
                period=period,
                limit_count=limit,
                used=0,
                reserved=0,
            )
        )
        try:
            self.db.commit()
        except IntegrityError:
            # Another dispatch created the row first
            self.db.rollback()

    def _apply(self, reservation: QuotaReservation, **values) -> None:
        stmt = (
            update(QuotaCounter)
            .where(
                QuotaCounter.user_id == reservation.user_id,
                QuotaCounter.channel == reservation.channel.value,
                QuotaCounter.period == reservation.period,
                QuotaCounter.reserved > 0,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()
