"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service: str = "debtflow", **kwargs):
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service


def setup_logging(level: str = "INFO", service: str = "debtflow") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service=service,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_dispatch(
    user_id: str,
    debt_id: str,
    channel: str,
    outcome: str,
    reminder_id: Optional[str] = None,
    offset_days: Optional[int] = None,
    error: Optional[str] = None,
    duration_ms: Optional[float] = None,
) -> None:
    """Log structured dispatch outcome for the reminder audit trail"""
    logging.getLogger("debtflow.dispatch").info(
        "Reminder dispatched" if outcome == "sent" else "Reminder dispatch failed",
        extra={
            "user_id": user_id,
            "debt_id": debt_id,
            "step": "dispatch",
            "channel": channel,
            "outcome": outcome,
            "reminder_id": reminder_id,
            "offset_days": offset_days,
            "error": error,
            "duration_ms": duration_ms,
        },
    )


def log_reconciliation(response_id: str, debt_id: str, resolution: str, debt_status: str) -> None:
    """Log staff decision on a payment claim"""
    logging.getLogger("debtflow.reconciliation").info(
        "Payment claim resolved",
        extra={
            "response_id": response_id,
            "debt_id": debt_id,
            "step": "reconciliation",
            "resolution": resolution,
            "debt_status": debt_status,
        },
    )


def log_tick(user_id: str, run_date: str, sent: int, failed: int, denied: int, skipped: int) -> None:
    """Log summary of one scheduling tick"""
    logging.getLogger("debtflow.scheduler").info(
        "Scheduling tick completed",
        extra={
            "user_id": user_id,
            "run_date": run_date,
            "step": "tick_complete",
            "sent": sent,
            "failed": failed,
            "denied": denied,
            "skipped": skipped,
        },
    )
