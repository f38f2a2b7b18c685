"""Dependency injection for FastAPI endpoints"""

from datetime import date
from typing import Dict
from fastapi import Depends
from sqlalchemy.orm import Session
from debtflow.config import settings
from debtflow.domain.models import Channel
from debtflow.infrastructure.clients.email import EmailSender
from debtflow.infrastructure.clients.whatsapp import WhatsAppSender
from debtflow.infrastructure.database.session import get_db
from debtflow.services.dispatch import ChannelSender, DispatchCoordinator
from debtflow.utils.date_utils import local_today


def get_today() -> date:
    """Business date in the configured timezone"""
    return local_today(settings.timezone)


def get_senders() -> Dict[Channel, ChannelSender]:
    """Provide one channel sender per channel"""
    return {
        Channel.EMAIL: EmailSender(),
        Channel.WHATSAPP: WhatsAppSender(),
    }


def get_coordinator(
    db: Session = Depends(get_db),
    senders: Dict[Channel, ChannelSender] = Depends(get_senders),
) -> DispatchCoordinator:
    return DispatchCoordinator(db, senders)
