"""Map domain exceptions to structured HTTP errors"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from debtflow.domain.exceptions import (
    AlreadyResolved,
    ClaimAlreadyPending,
    DomainException,
    InvalidPayment,
    MissingRecipient,
    NoTemplateConfigured,
    NotFound,
    PlanNotEligible,
    QuotaExceeded,
    ReminderAlreadySent,
    SendFailed,
)

STATUS_BY_EXCEPTION = {
    NotFound: 404,
    AlreadyResolved: 409,
    ClaimAlreadyPending: 409,
    ReminderAlreadySent: 409,
    InvalidPayment: 422,
    MissingRecipient: 422,
    NoTemplateConfigured: 422,
    PlanNotEligible: 403,
    QuotaExceeded: 429,
    SendFailed: 502,
}


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = STATUS_BY_EXCEPTION.get(type(exc), 400)
    body = {"error": exc.code, "detail": str(exc)}
    if isinstance(exc, SendFailed) and exc.reminder_id is not None:
        body["reminder_id"] = str(exc.reminder_id)

    log = logging.warning if status_code < 500 else logging.error
    log(
        f"Request failed: {exc.code}",
        extra={"request_id": getattr(request.state, "request_id", "unknown"), "error": exc.code},
    )
    return JSONResponse(status_code=status_code, content=body)
