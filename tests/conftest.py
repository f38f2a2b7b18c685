"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from debtflow.api.main import create_app
from debtflow.api.dependencies import get_senders, get_today
from debtflow.domain.models import Channel
from debtflow.infrastructure.database.models import Base, Customer, Debt, Template, UserAccount
from debtflow.infrastructure.database.quota import QuotaTracker
from debtflow.infrastructure.database.repositories import CustomerRepository, TemplateRepository, UserRepository
from debtflow.infrastructure.database.session import get_db
from debtflow.services.debts import DebtService
from debtflow.services.dispatch import DispatchCoordinator


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2024, 4, 10)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def senders() -> Dict[Channel, AsyncMock]:
    """Channel senders that accept every message"""
    email = AsyncMock()
    email.send.return_value = "email_msg_1"
    whatsapp = AsyncMock()
    whatsapp.send.return_value = "wa_msg_1"
    return {Channel.EMAIL: email, Channel.WHATSAPP: whatsapp}


@pytest.fixture
def client(db: Session, senders: Dict[Channel, AsyncMock]) -> TestClient:
    """Create FastAPI test client with test database, fake senders and a fixed date"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_senders] = lambda: senders
    app.dependency_overrides[get_today] = lambda: TODAY
    return TestClient(app)


@pytest.fixture
def make_user(db: Session) -> Callable[..., UserAccount]:
    def _make(user_id: str = "user_pro", plan: str = "pro", override=None) -> UserAccount:
        user = UserRepository(db).create(user_id, name="Michael Cohen", company_name="Digital Solutions Ltd", plan=plan)
        user.whatsapp_quota_override = override
        db.commit()
        return user

    return _make


@pytest.fixture
def user(make_user) -> UserAccount:
    return make_user()


@pytest.fixture
def customer(db: Session, user: UserAccount) -> Customer:
    customer = CustomerRepository(db).create(
        user_id=user.id,
        name="Alon Levi",
        email="alon@example.com",
        phone="052-1234567",
    )
    db.commit()
    return customer


@pytest.fixture
def templates(db: Session, user: UserAccount) -> Dict[Channel, Template]:
    """One default template per channel"""
    repo = TemplateRepository(db)
    email = repo.create(
        user_id=user.id,
        channel=Channel.EMAIL,
        name="Standard reminder",
        subject="Reminder for invoice {{invoiceNumber}}",
        body="Hello {{customerName}}, {{amount}} {{currency}} for invoice {{invoiceNumber}} was due {{dueDate}}. {{userName}}, {{companyName}}",
        is_default=True,
    )
    whatsapp = repo.create(
        user_id=user.id,
        channel=Channel.WHATSAPP,
        name="WhatsApp reminder",
        body="Hi {{customerName}}, {{amount}} {{currency}} is open on {{invoiceNumber}}",
        is_default=True,
    )
    db.commit()
    return {Channel.EMAIL: email, Channel.WHATSAPP: whatsapp}


@pytest.fixture
def make_debt(db: Session, user: UserAccount, customer: Customer) -> Callable[..., Debt]:
    def _make(
        amount: str = "1500",
        due_date: date = date(2024, 4, 1),
        today: date = TODAY,
        invoice_number: str = "INV-2024-001",
    ) -> Debt:
        return DebtService(db).create_debt(
            user_id=user.id,
            customer_id=customer.id,
            amount=Decimal(amount),
            invoice_number=invoice_number,
            due_date=due_date,
            today=today,
        )

    return _make


@pytest.fixture
def coordinator(db: Session, senders: Dict[Channel, AsyncMock]) -> DispatchCoordinator:
    return DispatchCoordinator(db, senders, QuotaTracker(db), timeout=1.0)
