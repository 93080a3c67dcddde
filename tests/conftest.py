"""Pytest configuration and fixtures."""

import logging
import os

# the app's module-level engine must not reach for PostgreSQL in tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import koperasi.models  # noqa: F401
from koperasi.services.loan_service import LoanService
from koperasi.utils.database import Base, get_db
from koperasi.utils.installment_ledger import LoanTerms

ADMIN_HEADERS = {"X-User-Role": "admin"}


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def service(db) -> LoanService:
    """Service with a fixed 'today' so derived statuses are stable."""
    return LoanService(db, today=date(2024, 3, 20))


@pytest.fixture
def client(engine):
    from main import app

    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, headers=ADMIN_HEADERS) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def standard_terms() -> LoanTerms:
    """1,000,000 at 10% flat over 10 months, disbursed 2024-01-15."""
    return LoanTerms(
        loan_id=1,
        principal=Decimal("1000000"),
        interest_rate_percent=Decimal("10"),
        term_months=10,
        start_date=date(2024, 1, 15),
    )
