"""Pytest fixtures for testing"""

import os

# Point settings at SQLite before the application modules read them
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from obligation_engine.api.main import create_app
from obligation_engine.domain.clock import FixedClock
from obligation_engine.domain.models import (
    AccountScope,
    EntryKind,
    Periodicity,
    RecurrenceDefinition,
)
from obligation_engine.infrastructure.database.models import Base
from obligation_engine.infrastructure.database.session import build_engine, get_db
from obligation_engine.services.lifecycle import ObligationLifecycleService
from obligation_engine.services.notifications import ChangeNotifier
from obligation_engine.utils.locks import KeyedLocks


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


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
def session_factory() -> sessionmaker:
    """Factory for extra sessions on the test database (one per worker thread)"""
    return TestingSessionLocal


@pytest.fixture
def clock() -> FixedClock:
    """Today is 2024-01-10 for every service-level test"""
    return FixedClock(date(2024, 1, 10))


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def service(db: Session, clock: FixedClock, notifier: ChangeNotifier) -> ObligationLifecycleService:
    """Lifecycle service with a pinned clock and isolated notifier/locks"""
    return ObligationLifecycleService(db, clock=clock, notifier=notifier, locks=KeyedLocks())


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
def monthly_rent() -> RecurrenceDefinition:
    """Monthly rent from 2024-01-15 to 2024-04-15 (four occurrences)"""
    return RecurrenceDefinition(
        owner_id="user_1",
        kind=EntryKind.EXPENSE,
        amount=Decimal("1200.00"),
        description="Rent",
        category_id="housing",
        start_date=date(2024, 1, 15),
        periodicity=Periodicity.MONTHLY,
        end_date=date(2024, 4, 15),
        account_scope=AccountScope.PERSONAL,
        counterparty="Landlord LLC",
    )
