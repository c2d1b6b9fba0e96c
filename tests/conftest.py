"""
Pytest fixtures for the recurring engine test suite.

Provides:
- Structured logging setup and a ``captured_logs`` fixture
- In-memory SQLite engine/session factory (fast unit tests)
- File-backed SQLite session factory (true multi-threaded concurrency)
- A deterministic clock and an ``EngineConfig`` for tests
- ``store``: seed-data factory for users, wallets, categories, budgets,
  transactions and recurring templates
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from pfm_config.schema import (
    AlertThresholds,
    DatabaseSettings,
    EngineConfig,
    ProcessingSettings,
    TriggerSettings,
)
from pfm_kernel.db.engine import build_engine, create_tables
from pfm_kernel.domain.clock import DeterministicClock
from pfm_kernel.domain.dtos import BudgetPeriod, Direction
from pfm_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from pfm_kernel.models import (
    AlertRecord,
    Budget,
    Category,
    Notification,
    Transaction,
    UserProfile,
    Wallet,
)

from pfm_recurring.domain.types import Frequency
from pfm_recurring.models.recurring import RecurringTemplateModel
from pfm_recurring.orchestrator import RecurringOrchestrator

TEST_SECRET = "test-cron-secret"

# 2024-03-01 09:00 UTC, a Friday
DEFAULT_NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


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
    Capture ``pfm`` logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, processor):
            processor.run(now)
            logs = captured_logs()
            assert any(r["message"] == "recurring_run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("pfm")
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
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """Session for assertions; expired between queries so reads are fresh."""
    sess = session_factory()
    yield sess
    sess.close()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite database for tests that use real threads."""
    eng = build_engine(f"sqlite:///{tmp_path / 'pfm-test.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return sessionmaker(bind=file_engine, expire_on_commit=False)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(DEFAULT_NOW)


@pytest.fixture
def config():
    return EngineConfig(
        database=DatabaseSettings(url="sqlite://"),
        processing=ProcessingSettings(max_workers=1),
        alerts=AlertThresholds(),
        trigger=TriggerSettings(secret=TEST_SECRET),
    )


@pytest.fixture
def orchestrator(session_factory, config, clock):
    return RecurringOrchestrator(session_factory, config, clock=clock)


@pytest.fixture
def processor(orchestrator):
    return orchestrator.create_processor()


# =============================================================================
# Seed data
# =============================================================================


class SeedStore:
    """Writes shared-store rows the way the CRUD layer would."""

    def __init__(self, session_factory, created_at: datetime = DEFAULT_NOW):
        self._session_factory = session_factory
        self._created_at = created_at

    def _add(self, obj):
        with self._session_factory() as session:
            session.add(obj)
            session.commit()
        return obj

    def user(self, tz: str = "UTC") -> UUID:
        user_id = uuid4()
        self._add(UserProfile(id=user_id, timezone=tz))
        return user_id

    def wallet(self, user_id: UUID, balance: int = 0, name: str = "Checking") -> UUID:
        wallet = Wallet(
            id=uuid4(),
            user_id=user_id,
            name=name,
            balance=balance,
            created_at=self._created_at,
        )
        return self._add(wallet).id

    def category(self, user_id: UUID, name: str = "Housing") -> UUID:
        category = Category(
            id=uuid4(), user_id=user_id, name=name, created_at=self._created_at,
        )
        return self._add(category).id

    def template(
        self,
        user_id: UUID,
        wallet_id: UUID,
        category_id: UUID,
        *,
        amount: int = 120000,
        direction: Direction = Direction.EXPENSE,
        frequency: Frequency = Frequency.MONTHLY,
        next_run_at: datetime = DEFAULT_NOW,
        anchor_at: datetime | None = None,
        anchor_day: int | None = None,
        end_date: datetime | None = None,
        is_active: bool = True,
        description: str | None = "Rent",
    ) -> UUID:
        template = RecurringTemplateModel(
            id=uuid4(),
            user_id=user_id,
            description=description,
            amount=amount,
            direction=direction.value,
            category_id=category_id,
            wallet_id=wallet_id,
            frequency=frequency.value,
            anchor_day=anchor_day,
            anchor_at=anchor_at or next_run_at,
            next_run_at=next_run_at,
            end_date=end_date,
            is_active=is_active,
            created_at=self._created_at,
        )
        return self._add(template).id

    def budget(
        self,
        user_id: UUID,
        limit_amount: int,
        *,
        category_id: UUID | None = None,
        wallet_id: UUID | None = None,
        period: BudgetPeriod = BudgetPeriod.MONTHLY,
        starts_at: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc),
        name: str = "Groceries",
        is_active: bool = True,
    ) -> UUID:
        budget = Budget(
            id=uuid4(),
            user_id=user_id,
            name=name,
            category_id=category_id,
            wallet_id=wallet_id,
            limit_amount=limit_amount,
            period=period.value,
            starts_at=starts_at,
            is_active=is_active,
            created_at=self._created_at,
        )
        return self._add(budget).id

    def transaction(
        self,
        user_id: UUID,
        wallet_id: UUID,
        category_id: UUID,
        amount: int,
        occurred_at: datetime,
        *,
        direction: Direction = Direction.EXPENSE,
        is_deleted: bool = False,
    ) -> UUID:
        txn = Transaction(
            id=uuid4(),
            user_id=user_id,
            wallet_id=wallet_id,
            category_id=category_id,
            amount=amount,
            direction=direction.value,
            occurred_at=occurred_at,
            is_deleted=is_deleted,
            created_at=self._created_at,
        )
        return self._add(txn).id

    # -- reads ----------------------------------------------------------------

    def get_template(self, template_id: UUID) -> RecurringTemplateModel:
        with self._session_factory() as session:
            return session.get(RecurringTemplateModel, template_id)

    def get_wallet(self, wallet_id: UUID) -> Wallet:
        with self._session_factory() as session:
            return session.get(Wallet, wallet_id)

    def transactions(self, template_id: UUID | None = None) -> list[Transaction]:
        stmt = select(Transaction).order_by(Transaction.occurred_at)
        if template_id is not None:
            stmt = stmt.where(Transaction.recurring_template_id == template_id)
        with self._session_factory() as session:
            return list(session.execute(stmt).scalars())

    def notifications(self, kind: str | None = None) -> list[Notification]:
        stmt = select(Notification).order_by(Notification.created_at)
        if kind is not None:
            stmt = stmt.where(Notification.kind == kind)
        with self._session_factory() as session:
            return list(session.execute(stmt).scalars())

    def alert_records(self) -> list[AlertRecord]:
        with self._session_factory() as session:
            return list(session.execute(select(AlertRecord)).scalars())


@pytest.fixture
def store(session_factory):
    return SeedStore(session_factory)


@pytest.fixture
def file_store(file_session_factory):
    return SeedStore(file_session_factory)


@pytest.fixture
def owner(store):
    """A UTC user with one wallet and one category."""
    user_id = store.user()
    return {
        "user_id": user_id,
        "wallet_id": store.wallet(user_id, balance=500000),
        "category_id": store.category(user_id),
    }
