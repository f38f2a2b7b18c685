"""Quota inspection and the monthly reset trigger"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from debtflow.api.dependencies import get_today
from debtflow.api.v1.schemas import QuotaOut, QuotaResetRequest, QuotaResetResponse
from debtflow.domain.models import Channel
from debtflow.domain.quota import period_for
from debtflow.infrastructure.database.quota import QuotaTracker
from debtflow.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/quota", response_model=QuotaOut)
def get_quota(
    user_id: str = Query(..., description="User identifier"),
    channel: Channel = Query(Channel.WHATSAPP),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    remaining = QuotaTracker(db).remaining(user_id, channel, today)
    return QuotaOut(user_id=user_id, channel=channel, period=period_for(today), remaining=remaining)


@router.post("/quota/reset", response_model=QuotaResetResponse)
def reset_quota(body: QuotaResetRequest, db: Session = Depends(get_db)):
    """Called by the billing-period timer at each month boundary"""
    written = QuotaTracker(db).monthly_reset(body.period)
    return QuotaResetResponse(period=body.period, counters_reset=written)
