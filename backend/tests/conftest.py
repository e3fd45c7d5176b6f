from __future__ import annotations

import os
import uuid
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Optional

# Settings are read at import time; a real DATABASE_URL_ASYNC (PostgreSQL)
# switches the suite to an isolated schema, otherwise a temp SQLite file.
PG_DATABASE_URL = os.getenv("DATABASE_URL_ASYNC")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite://")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from tutor_earnings.core.config import _strip_asyncpg_unsupported_params
from tutor_earnings.core.errors import LedgerEntryError
from tutor_earnings.core.periods import period_for
from tutor_earnings.core.security import create_access_token
from tutor_earnings.db.session import get_db
from tutor_earnings.models.subscription_revenue_pool import (
    POOL_CALCULATING,
    POOL_DISTRIBUTED,
    SubscriptionRevenuePool,
)
from tutor_earnings.models.teacher_earning import SOURCE_SUBSCRIPTION, TeacherEarning
from tutor_earnings.services.revenue_repository import EngagementRow

# Ensure Base + models are registered before create_all
from tutor_earnings.db.base import Base  # noqa: F401
import tutor_earnings.models  # noqa: F401


# ---------------------------------------------------------
# Engine + schema lifecycle (one database per test)
# ---------------------------------------------------------
def _enable_sqlite_savepoints(engine) -> None:
    """
    pysqlite/aiosqlite manage BEGIN themselves, which breaks SAVEPOINT.
    Hand transaction control back to SQLAlchemy.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # readers (test assertions) must not block the API session's writes
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


async def _wait_for_db(engine) -> None:
    last_exc = None
    for _ in range(30):  # ~30 seconds max wait
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return
        except Exception as e:
            last_exc = e
            await asyncio.sleep(1)
    raise RuntimeError(f"Database not reachable for tests: {last_exc}") from last_exc


@pytest_asyncio.fixture()
async def engine(tmp_path):
    if PG_DATABASE_URL:
        schema = f"test_{uuid.uuid4().hex}"
        engine = create_async_engine(
            _strip_asyncpg_unsupported_params(PG_DATABASE_URL),
            future=True,
            echo=False,
            poolclass=NullPool,
            connect_args={"server_settings": {"search_path": schema}},
        )
        await _wait_for_db(engine)

        async with engine.begin() as conn:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
            await conn.execute(text(f'SET search_path TO "{schema}"'))
            await conn.run_sync(Base.metadata.create_all)

        yield engine

        async with engine.begin() as conn:
            await conn.execute(text(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE'))
        await engine.dispose()
        return

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tutor_earnings_test.db'}",
        future=True,
        echo=False,
        poolclass=NullPool,
    )
    _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture()
def session_factory(sessionmaker):
    """Drop-in for db.session.session_scope, bound to the test database."""

    @asynccontextmanager
    async def _scope():
        async with sessionmaker() as session:
            try:
                yield session
            except BaseException:
                await session.rollback()
                raise

    return _scope


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    Commit setup rows before calling the API; rollback() before asserting
    so the next query sees what the API committed.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from tutor_earnings.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture()
def auth_headers():
    def _headers(user) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


# ---------------------------------------------------------
# In-memory revenue store (engine unit tests)
# ---------------------------------------------------------
_POOL_FIELDS = (
    "id",
    "period",
    "period_start",
    "period_end",
    "total_revenue",
    "platform_fee",
    "teacher_pool",
    "total_watch_time",
    "total_engagements",
    "status",
    "version",
    "distributed_at",
)


class InMemoryRevenueRepository:
    """
    RevenueRepository over plain dicts with the same transaction shape as
    the SQL one: writes are staged until commit() and dropped by rollback().
    """

    def __init__(self) -> None:
        self.revenue: dict[str, Decimal] = {}
        self.engagements: dict[str, list[EngagementRow]] = {}
        self.fail_for: set[uuid.UUID] = set()
        self.lose_status_race = False

        self.earnings: list[TeacherEarning] = []
        self.commits = 0
        self.rollbacks = 0

        self._pools: dict[str, dict] = {}
        self._live: dict[str, SubscriptionRevenuePool] = {}
        self._pending: list[TeacherEarning] = []

    # -- setup helpers --------------------------------------------------
    def add_engagement(
        self,
        period: str,
        teacher_id: Optional[uuid.UUID],
        minutes: int,
        *,
        completed: bool = False,
    ) -> None:
        self.engagements.setdefault(period, []).append(
            EngagementRow(
                engagement_id=uuid.uuid4(),
                teacher_id=teacher_id,
                watch_time_minutes=minutes,
                is_completed=completed,
            )
        )

    def stored_pool(self, period: str) -> Optional[dict]:
        return self._pools.get(period)

    # -- RevenueRepository ----------------------------------------------
    async def sum_subscription_revenue(self, period_start: datetime, period_end: datetime) -> Decimal:
        return self.revenue.get(period_for(period_start).key, Decimal("0"))

    async def list_period_engagements(self, period: str) -> list[EngagementRow]:
        return list(self.engagements.get(period, []))

    async def get_pool(self, period: str, *, for_update: bool = False) -> Optional[SubscriptionRevenuePool]:
        if period in self._live:
            return self._live[period]
        stored = self._pools.get(period)
        if stored is None:
            return None
        pool = SubscriptionRevenuePool(**stored)
        self._live[period] = pool
        return pool

    async def get_latest_distributed_pool(self) -> Optional[SubscriptionRevenuePool]:
        done = [p for p in self._pools.values() if p["status"] == POOL_DISTRIBUTED]
        if not done:
            return None
        latest = max(done, key=lambda p: p["distributed_at"])
        return await self.get_pool(latest["period"])

    async def save_pool(self, pool: SubscriptionRevenuePool) -> SubscriptionRevenuePool:
        self._live[pool.period] = pool
        return pool

    async def mark_pool_distributed(self, pool: SubscriptionRevenuePool, distributed_at: datetime) -> bool:
        if self.lose_status_race or pool.status != POOL_CALCULATING:
            return False
        pool.status = POOL_DISTRIBUTED
        pool.distributed_at = distributed_at
        pool.version = pool.version + 1
        return True

    async def add_earning(self, entry: TeacherEarning) -> TeacherEarning:
        if entry.teacher_id in self.fail_for:
            raise LedgerEntryError("simulated insert failure", period=entry.period, teacher_id=entry.teacher_id)
        taken = {
            (e.teacher_id, e.period)
            for e in self.earnings + self._pending
            if e.revenue_source == SOURCE_SUBSCRIPTION
        }
        if entry.revenue_source == SOURCE_SUBSCRIPTION and (entry.teacher_id, entry.period) in taken:
            raise LedgerEntryError("duplicate", period=entry.period, teacher_id=entry.teacher_id)
        self._pending.append(entry)
        return entry

    async def list_subscription_earnings(self, period: str) -> list[TeacherEarning]:
        return [
            e
            for e in self.earnings + self._pending
            if e.period == period and e.revenue_source == SOURCE_SUBSCRIPTION
        ]

    async def commit(self) -> None:
        for period, pool in self._live.items():
            self._pools[period] = {f: getattr(pool, f) for f in _POOL_FIELDS}
        self._live.clear()
        self.earnings.extend(self._pending)
        self._pending.clear()
        self.commits += 1

    async def rollback(self) -> None:
        self._live.clear()
        self._pending.clear()
        self.rollbacks += 1


@pytest.fixture()
def memory_repo() -> InMemoryRevenueRepository:
    return InMemoryRevenueRepository()
