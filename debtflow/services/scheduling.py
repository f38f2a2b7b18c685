"""Daily scheduling tick - refresh statuses, plan due reminders, dispatch them"""

import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session
from debtflow.domain.models import DispatchRequest, TickReport
from debtflow.domain.scheduler import plan_dispatches
from debtflow.domain.exceptions import (
    MissingRecipient,
    NoTemplateConfigured,
    PlanNotEligible,
    QuotaExceeded,
    ReminderAlreadySent,
    SendFailed,
)
from debtflow.infrastructure.database.repositories import (
    CustomerRepository,
    DebtRepository,
    ReminderRepository,
    SettingsRepository,
    UserRepository,
)
from debtflow.infrastructure.observability.logging import log_tick
from debtflow.services.debts import DebtService
from debtflow.services.dispatch import DispatchCoordinator

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Runs scheduling ticks; the timer that triggers them lives outside this service"""

    def __init__(self, db: Session, coordinator: DispatchCoordinator):
        self.db = db
        self.coordinator = coordinator
        self.debts = DebtRepository(db)
        self.customers = CustomerRepository(db)
        self.reminders = ReminderRepository(db)
        self.settings = SettingsRepository(db)
        self.users = UserRepository(db)
        self.debt_service = DebtService(db)

    def pending_requests(self, user_id: str, today: date) -> List[DispatchRequest]:
        """Dispatch requests due for the user today, without sending anything"""
        return plan_dispatches(
            self.debts.snapshots_for_user(user_id),
            self.settings.get(user_id),
            self.reminders.fired_offsets(user_id),
            today,
        )

    async def run_tick(self, user_id: str, today: date) -> TickReport:
        """
        Run one tick for one user.

        A failure on one debt never stops the rest; every request ends up in
        exactly one of the report's sent / failed / denied / skipped lists.
        """
        report = TickReport(user_id=user_id, run_date=today)
        report.statuses_refreshed = self.debt_service.refresh_open_debts(user_id, today)

        for request in self.pending_requests(user_id, today):
            outcome = {
                "debt_id": str(request.debt_id),
                "offset_days": request.offset_days,
                "channel": request.channel.value,
            }
            debt = self.debts.get(request.debt_id)
            customer = self.customers.get(request.customer_id)
            try:
                result = await self.coordinator.send(
                    debt,
                    customer,
                    request.channel,
                    today,
                    template_id=request.template_id,
                    offset_days=request.offset_days,
                )
                report.sent.append(result)
            except SendFailed as e:
                outcome.update(reason=e.code, detail=str(e), reminder_id=str(e.reminder_id))
                report.failed.append(outcome)
            except (QuotaExceeded, PlanNotEligible) as e:
                outcome.update(reason=e.code, detail=str(e))
                report.denied.append(outcome)
                logger.warning(
                    "Scheduled reminder denied by quota",
                    extra={"user_id": user_id, "debt_id": outcome["debt_id"], "reason": e.code},
                )
            except (MissingRecipient, NoTemplateConfigured, ReminderAlreadySent) as e:
                outcome.update(reason=e.code, detail=str(e))
                report.skipped.append(outcome)
                logger.warning(
                    "Scheduled reminder skipped",
                    extra={"user_id": user_id, "debt_id": outcome["debt_id"], "reason": e.code},
                )

        log_tick(
            user_id,
            today.isoformat(),
            sent=len(report.sent),
            failed=len(report.failed),
            denied=len(report.denied),
            skipped=len(report.skipped),
        )
        return report

    async def run_all(self, today: date, user_ids: Optional[List[str]] = None) -> List[TickReport]:
        """Run a tick for every tenant (or the given ones)"""
        reports = []
        for user_id in user_ids or self.users.list_ids():
            reports.append(await self.run_tick(user_id, today))
        return reports
