"""Pytest fixtures for testing"""

import os

# Point the app at SQLite before any savings_agent module builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from savings_agent.api.main import create_app
from savings_agent.infrastructure.database.models import Base
from savings_agent.infrastructure.database.session import get_db
from savings_agent.domain.models import Transaction


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

# Fixed reference time for domain tests
NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)
TODAY = NOW.date()


class FakeClock:
    """Controllable clock for soft-lock tests"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def txn(amount: str, days_ago: int, description: str = "", counterparty: str | None = None) -> Transaction:
    """Build a transaction dated relative to TODAY"""
    return Transaction(
        amount=Decimal(amount),
        date=TODAY - timedelta(days=days_ago),
        description=description,
        counterparty_name=counterparty,
    )


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
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def windfall_transactions() -> list[Transaction]:
    """Biweekly $500 paychecks plus a $2000 bonus five days ago"""
    transactions = [txn("-500.00", days_ago, "Payroll Deposit", "Employer Inc") for days_ago in (70, 56, 42, 28, 14)]
    transactions.append(txn("-2000.00", 5, "Annual Bonus", "Employer Inc"))
    return transactions


@pytest.fixture
def sweep_transactions() -> list[Transaction]:
    """$200 spent this week against $1110 over the previous four weeks"""
    return [
        # This week
        txn("120.00", 2, "Groceries", "Supermarket"),
        txn("80.00", 5, "Fuel", "Gas Station"),
        # Baseline weeks
        txn("300.00", 10, "Groceries", "Supermarket"),
        txn("250.00", 17, "Dining", "Bistro"),
        txn("280.00", 24, "Shopping", "Department Store"),
        txn("280.00", 31, "Utilities", "Power Co"),
    ]


def as_payload(transactions: list[Transaction], today: date) -> list[dict]:
    """Serialize transactions as aggregator JSON, re-dated relative to `today`"""
    return [
        {
            "amount": str(t.amount),
            "date": (today - (TODAY - t.date)).isoformat(),
            "name": t.description,
            "merchant_name": t.counterparty_name,
        }
        for t in transactions
    ]
