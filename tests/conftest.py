"""Test fixtures and configuration."""

import logging
import os
import sys
from collections.abc import Awaitable, Callable
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Settings are read at import time, so these must be set before the app loads.
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from wallet_ledger.logger import get_logger  # noqa: E402

logger = get_logger(__name__)


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Fresh SQLite database per test.

    A file-backed database with NullPool gives every session its own
    connection, so API requests and the test's own session see each other's
    committed writes the same way they would against PostgreSQL.
    """
    from wallet_ledger.database import Base
    from wallet_ledger.models import (  # noqa: F401
        Reconciliation,
        StatementLine,
        Transaction,
        Wallet,
        WalletTransfer,
    )

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'wallet_ledger_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_database_connection(db_engine):
    """Route API handlers to the test engine."""
    from wallet_ledger import database

    test_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    previous = database.set_test_session_maker(test_maker)
    yield
    database.set_test_session_maker(previous)


@pytest_asyncio.fixture(scope="function")
async def db(db_engine):
    """Session for arranging and inspecting data.

    Seed helpers commit so that API requests, which run on their own
    sessions, can see the rows.
    """
    session = AsyncSession(db_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_wallet(db) -> Callable[..., Awaitable]:
    """Factory creating a committed wallet for an owner."""
    from wallet_ledger.models import Wallet

    async def _make(owner_id: UUID, *, name: str = "Checking", initial_balance: str = "0.00"):
        wallet = Wallet(
            user_id=owner_id,
            name=name,
            initial_balance=Decimal(initial_balance),
            current_balance=Decimal(initial_balance),
        )
        db.add(wallet)
        await db.commit()
        return wallet

    return _make


@pytest.fixture
def make_transaction(db) -> Callable[..., Awaitable]:
    """Factory creating a committed transaction without touching balances."""
    from wallet_ledger.models import Transaction, TransactionType

    async def _make(
        owner_id: UUID,
        wallet_id: UUID | None,
        *,
        amount: str,
        txn_type: TransactionType = TransactionType.EXPENSE,
        txn_date: date = date(2024, 3, 10),
        description: str = "Supermarket",
        category: str = "groceries",
        supplier: str | None = None,
        subtype: str | None = None,
        txn_id: UUID | None = None,
    ):
        txn = Transaction(
            user_id=owner_id,
            wallet_id=wallet_id,
            type=txn_type,
            amount=Decimal(amount),
            txn_date=txn_date,
            description=description,
            category=category,
            supplier=supplier,
            subtype=subtype,
        )
        if txn_id is not None:
            txn.id = txn_id
        db.add(txn)
        await db.commit()
        return txn

    return _make


@pytest.fixture
def make_line(db) -> Callable[..., Awaitable]:
    """Factory creating a committed pending statement line."""
    from wallet_ledger.models import StatementLine, StatementLineStatus
    from wallet_ledger.services.fingerprint import generate_fingerprint

    async def _make(
        owner_id: UUID,
        wallet_id: UUID,
        *,
        amount: str,
        transaction_date: date = date(2024, 3, 10),
        description: str = "SUPERMARKET",
        counterparty: str | None = None,
        batch_id: UUID | None = None,
    ):
        line = StatementLine(
            user_id=owner_id,
            wallet_id=wallet_id,
            transaction_date=transaction_date,
            description=description,
            counterparty=counterparty,
            amount=Decimal(amount),
            fingerprint=generate_fingerprint(transaction_date, Decimal(amount), description),
            import_batch_id=batch_id or uuid4(),
            reconciliation_status=StatementLineStatus.PENDING,
        )
        db.add(line)
        await db.commit()
        return line

    return _make


def _bearer(owner_id: UUID) -> dict[str, str]:
    from wallet_ledger.security import create_access_token

    token = create_access_token(data={"sub": str(owner_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> Callable[[UUID], dict[str, str]]:
    """Bearer headers for an arbitrary owner, for cross-owner checks."""
    return _bearer


@pytest_asyncio.fixture(scope="function")
async def client(user_id):
    """Async test client authenticated as ``user_id``."""
    from wallet_ledger.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers=_bearer(user_id),
    ) as client_instance:
        yield client_instance


@pytest_asyncio.fixture(scope="function")
async def public_client():
    """Async test client without auth headers."""
    from wallet_ledger.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client_instance:
        yield client_instance
