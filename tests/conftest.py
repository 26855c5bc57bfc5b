"""
Pytest fixtures for the recurring-transaction engine test suite.

Provides:
- A file-backed SQLite database per test (tables from Base.metadata)
- Session factories, a DeterministicClock and the test actor
- Factories for accounts, categories and recurring definitions
- Structured log capture

Environment Variables:
- DATABASE_URL: when it points at PostgreSQL, tests marked ``postgres`` run
  against it; otherwise they are skipped.

SQLite holds one writer at a time.  Tests end every read transaction
(commit/rollback) before a second session writes.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import configure_sqlite
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models import Account, Category

import ledger_recurring.models  # noqa: F401  (registers recurring_definitions)
from ledger_recurring.domain.types import RecurrenceFrequency, RecurringDefinitionInput
from ledger_recurring.services.definition_service import RecurringDefinitionService


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (DATABASE_URL)"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


def postgres_url() -> str | None:
    """DATABASE_URL if it names a PostgreSQL database, else None."""
    url = os.environ.get("DATABASE_URL")
    if url and make_url(url).get_backend_name() == "postgresql":
        return url
    return None


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, sweep_driver):
            sweep_driver.tick()
            logs = captured_logs()
            assert any(r["message"] == "sweep_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    configure_sqlite(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture
def clock():
    return DeterministicClock(
        fixed_time=datetime(2024, 1, 31, 12, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


# =============================================================================
# Reference data and definition factories
# =============================================================================


@pytest.fixture
def make_account(session):
    def _make(user_id: UUID, name: str = "Checking") -> Account:
        account = Account(user_id=user_id, name=name, created_by_id=TEST_ACTOR_ID)
        session.add(account)
        session.commit()
        return account

    return _make


@pytest.fixture
def make_category(session):
    def _make(user_id: UUID, name: str = "Housing") -> Category:
        category = Category(user_id=user_id, name=name, created_by_id=TEST_ACTOR_ID)
        session.add(category)
        session.commit()
        return category

    return _make


@pytest.fixture
def account(make_account, user_id) -> Account:
    return make_account(user_id)


@pytest.fixture
def category(make_category, user_id) -> Category:
    return make_category(user_id)


@pytest.fixture
def definition_service(session, test_actor_id) -> RecurringDefinitionService:
    return RecurringDefinitionService(session, actor_id=test_actor_id)


@pytest.fixture
def make_definition(session, definition_service, user_id, account):
    """
    Create and commit a recurring definition through the service.

    Defaults: "Rent", -50.00, MONTHLY every 1, starting 2024-01-31.
    """

    def _make(
        description: str = "Rent",
        amount: Decimal | str = Decimal("-50.00"),
        frequency: RecurrenceFrequency | str = RecurrenceFrequency.MONTHLY,
        start_date: date = date(2024, 1, 31),
        interval: int = 1,
        end_date: date | None = None,
        category_id: UUID | None = None,
        is_subscription: bool = False,
        owner_id: UUID | None = None,
        account_id: UUID | None = None,
    ):
        definition = definition_service.create(
            owner_id or user_id,
            RecurringDefinitionInput(
                description=description,
                amount=Decimal(str(amount)),
                frequency=frequency,
                start_date=start_date,
                account_id=account_id or account.id,
                interval=interval,
                end_date=end_date,
                category_id=category_id,
                is_subscription=is_subscription,
            ),
        )
        session.commit()
        return definition

    return _make
