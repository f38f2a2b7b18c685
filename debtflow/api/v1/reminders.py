"""Manual reminder sends and the scheduling tick trigger"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from debtflow.api.dependencies import get_coordinator, get_today
from debtflow.api.v1.schemas import SendReminderRequest, SendReminderResponse, TickOutcome, TickReportOut
from debtflow.domain.models import SendResult, TickReport
from debtflow.infrastructure.database.session import get_db
from debtflow.infrastructure.database.repositories import CustomerRepository, DebtRepository
from debtflow.services.dispatch import DispatchCoordinator
from debtflow.services.scheduling import ReminderScheduler

router = APIRouter()


def _result_out(result: SendResult) -> SendReminderResponse:
    return SendReminderResponse(
        reminder_id=str(result.reminder_id),
        channel=result.channel,
        status=result.status.value,
        message_id=result.message_id,
    )


def _report_out(report: TickReport) -> TickReportOut:
    return TickReportOut(
        user_id=report.user_id,
        run_date=report.run_date,
        statuses_refreshed=report.statuses_refreshed,
        sent=[_result_out(r) for r in report.sent],
        failed=[TickOutcome(**o) for o in report.failed],
        denied=[TickOutcome(**o) for o in report.denied],
        skipped=[TickOutcome(**o) for o in report.skipped],
    )


@router.post("/reminders", response_model=SendReminderResponse, status_code=201)
async def send_reminder(
    body: SendReminderRequest,
    db: Session = Depends(get_db),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
    today: date = Depends(get_today),
):
    """
    Send a reminder now.

    Manual sends skip the per-offset duplicate guard. A provider failure is
    recorded as a failed reminder and answered with 502 send_failed.
    """
    debt = DebtRepository(db).get(body.debt_id)
    customer = CustomerRepository(db).get(debt.customer_id)
    result = await coordinator.send(debt, customer, body.channel, today, template_id=body.template_id)
    return _result_out(result)


@router.post("/reminders/run", response_model=List[TickReportOut])
async def run_scheduler(
    user_id: Optional[str] = Query(None, description="Limit the tick to one user"),
    db: Session = Depends(get_db),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
    today: date = Depends(get_today),
):
    """
    Run the daily scheduling tick.

    Called by an external timer; safe to call more than once a day since
    offsets that already fired are not sent again.
    """
    scheduler = ReminderScheduler(db, coordinator)
    reports = await scheduler.run_all(today, [user_id] if user_id else None)
    return [_report_out(r) for r in reports]
