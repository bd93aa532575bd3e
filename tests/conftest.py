"""Pytest configuration and shared fixtures.

This module provides shared fixtures for all tests, including an in-memory
stand-in for ``asyncpg.Pool`` that keeps the real pool's bounded, exclusive
leasing behaviour without a database.
"""

import asyncio
import os
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from postgres_mcp.config.settings import ConnectionPoolConfig, PoolSizing, reset_settings
from postgres_mcp.db.pool import ConnectionPool

_ENV_PREFIXES = ("PG", "POSTGRES_", "OBSERVABILITY_")


class FakeStatement:
    """Prepared statement returned by :meth:`FakeConnection.prepare`."""

    def __init__(self, connection: "FakeConnection", sql: str) -> None:
        self.connection = connection
        self.sql = sql

    async def fetch(self, *args: Any) -> list[dict[str, Any]]:
        backend = self.connection.backend
        backend.executed.append((self.sql, args))

        self.connection.running += 1
        if self.connection.running > 1:
            backend.overlapping_use = True
        try:
            if backend.query_delay:
                await asyncio.sleep(backend.query_delay)
            if backend.query_error is not None:
                raise backend.query_error
            return [dict(row) for row in backend.rows]
        finally:
            self.connection.running -= 1

    def get_statusmsg(self) -> str:
        return self.connection.backend.status

    def get_attributes(self) -> tuple[str, ...]:
        return ("?column?",) if self.connection.backend.returns_rows else ()


class FakeConnection:
    """Physical connection stand-in."""

    def __init__(self, backend: "FakeAsyncpgPool", ident: int) -> None:
        self.backend = backend
        self.ident = ident
        self.leased = False
        self.running = 0
        self.add_termination_listener = MagicMock()

    async def prepare(self, sql: str) -> FakeStatement:
        return FakeStatement(self, sql)

    async def fetchrow(self, sql: str, *args: Any, timeout: float | None = None) -> Any:
        return await self.backend.health_row(sql, *args, timeout=timeout)

    async def fetchval(self, sql: str) -> str:
        if self.backend.startup_error is not None:
            raise self.backend.startup_error
        return "PostgreSQL 16.0"


class FakeAsyncpgPool:
    """Bounded connection pool with asyncpg's public surface.

    Connections are opened lazily up to ``max_size``; ``acquire`` waits for a
    free connection and honours ``timeout``; ``close`` waits until every
    connection is back in the idle set.
    """

    def __init__(self) -> None:
        self.min_size = 1
        self.max_size = 10
        self.create_kwargs: dict[str, Any] = {}
        self.init_hook: Callable[[Any], Awaitable[None]] | None = None
        self.setup_hook: Callable[[Any], Awaitable[None]] | None = None

        self.connections: list[FakeConnection] = []
        self.idle: list[FakeConnection] = []
        self._cond = asyncio.Condition()

        # Statement behaviour
        self.rows: list[dict[str, Any]] = [{"?column?": 1}]
        self.status = "SELECT 1"
        self.returns_rows = True
        self.query_error: BaseException | None = None
        self.query_delay = 0.0
        self.startup_error: BaseException | None = None
        self.executed: list[tuple[str, tuple[Any, ...]]] = []
        self.overlapping_use = False

        # Row returned by FakeConnection.fetchrow (the health check query)
        self.health_row = AsyncMock(
            return_value={"version": "PostgreSQL 16.0", "current_database": "testdb"}
        )
        self.terminate = MagicMock()
        self.close_calls = 0
        self.close_error: BaseException | None = None
        self.close_delay = 0.0
        self.release_calls = 0

    async def start(self, **kwargs: Any) -> None:
        self.create_kwargs = kwargs
        self.min_size = kwargs.get("min_size", self.min_size)
        self.max_size = kwargs.get("max_size", self.max_size)
        self.init_hook = kwargs.get("init")
        self.setup_hook = kwargs.get("setup")
        for _ in range(self.min_size):
            conn = await self._open()
            self.idle.append(conn)

    async def _open(self) -> FakeConnection:
        conn = FakeConnection(self, len(self.connections))
        self.connections.append(conn)
        if self.init_hook is not None:
            await self.init_hook(conn)
        return conn

    async def acquire(self, timeout: float | None = None) -> FakeConnection:
        return await asyncio.wait_for(self._acquire(), timeout)

    async def _acquire(self) -> FakeConnection:
        async with self._cond:
            await self._cond.wait_for(
                lambda: bool(self.idle) or len(self.connections) < self.max_size
            )
            conn = self.idle.pop() if self.idle else await self._open()
            conn.leased = True
        if self.setup_hook is not None:
            await self.setup_hook(conn)
        return conn

    async def release(self, conn: FakeConnection, timeout: float | None = None) -> None:
        if not conn.leased:
            raise asyncpg.InterfaceError("cannot release a connection that is not acquired")
        conn.leased = False
        self.release_calls += 1
        async with self._cond:
            self.idle.append(conn)
            self._cond.notify_all()

    def get_size(self) -> int:
        return len(self.connections)

    def get_idle_size(self) -> int:
        return len(self.idle)

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        async with self._cond:
            await self._cond.wait_for(lambda: len(self.idle) == len(self.connections))


@pytest.fixture(autouse=True)
def reset_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global settings and drop connection variables from the environment."""
    for key in list(os.environ):
        if key.upper().startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    reset_settings()


@pytest.fixture(autouse=True)
def disable_metrics_for_tests(monkeypatch: pytest.MonkeyPatch) -> None:
    """Disable the metrics server to avoid port conflicts."""
    monkeypatch.setenv("OBSERVABILITY_METRICS_ENABLED", "false")


@pytest.fixture
def fake_pg() -> FakeAsyncpgPool:
    """In-memory asyncpg pool."""
    return FakeAsyncpgPool()


@pytest.fixture
def create_pool_mock(monkeypatch: pytest.MonkeyPatch, fake_pg: FakeAsyncpgPool) -> AsyncMock:
    """Replace ``asyncpg.create_pool`` so pools are backed by ``fake_pg``."""

    async def create_pool(**kwargs: Any) -> FakeAsyncpgPool:
        await fake_pg.start(**kwargs)
        return fake_pg

    mock = AsyncMock(side_effect=create_pool)
    monkeypatch.setattr("postgres_mcp.db.pool.asyncpg.create_pool", mock)
    return mock


@pytest.fixture
def pool_config() -> ConnectionPoolConfig:
    """Connection settings for the test database."""
    return ConnectionPoolConfig(
        host="localhost",
        port=5432,
        user="test",
        password="test",
        database="testdb",
        pool=PoolSizing(min=1, max=10, acquire_timeout=1.0, drain_timeout=1.0),
    )


@pytest.fixture
def pool(pool_config: ConnectionPoolConfig, create_pool_mock: AsyncMock) -> ConnectionPool:
    """Uninitialized pool wired to the in-memory backend."""
    return ConnectionPool(pool_config)
