"""Reminder scheduling - which offsets are due on a given day"""

import uuid
from datetime import date, timedelta
from typing import Iterable, List, Set, Tuple
from debtflow.domain.models import DebtSnapshot, DebtStatus, DispatchRequest, ReminderSettings


def target_date(due_date: date, offset_days: int) -> date:
    """
    Date an offset fires on.

    Negative offsets are days before the due date, positive offsets days
    after it, 0 is the due date itself.
    """
    return due_date + timedelta(days=offset_days)


def due_offsets(due_date: date, reminder_days: Iterable[int], today: date) -> List[int]:
    """Offsets whose target date is today, in ascending order"""
    return sorted({offset for offset in reminder_days if target_date(due_date, offset) == today})


def plan_dispatches(
    debts: Iterable[DebtSnapshot],
    reminder_settings: ReminderSettings,
    fired: Set[Tuple[uuid.UUID, int]],
    today: date,
) -> List[DispatchRequest]:
    """
    Compute the dispatch requests for one scheduling tick.

    Args:
        debts: The user's debts
        reminder_settings: The user's reminder settings
        fired: (debt_id, offset) pairs that already have a non-failed reminder
        today: The tick date

    Returns:
        One request per (debt, offset) due today that has not fired yet
    """
    if not reminder_settings.enabled or not reminder_settings.reminder_days:
        return []

    requests = []
    for debt in debts:
        if debt.status == DebtStatus.PAID:
            continue

        for offset in due_offsets(debt.due_date, reminder_settings.reminder_days, today):
            if (debt.debt_id, offset) in fired:
                continue
            requests.append(
                DispatchRequest(
                    debt_id=debt.debt_id,
                    customer_id=debt.customer_id,
                    offset_days=offset,
                    channel=reminder_settings.default_channel,
                    template_id=reminder_settings.default_template_id,
                )
            )

    return requests
