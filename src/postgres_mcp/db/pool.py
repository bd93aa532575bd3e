"""Database connection pool management.

This module wraps an asyncpg connection pool with an explicit lifecycle
(uninitialized -> initializing -> ready -> draining -> closed), leased
connection access, direct query execution, statistics and health probing.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, TypeAlias

import asyncpg
from asyncpg import Pool
from asyncpg.pool import PoolConnectionProxy

from postgres_mcp.config.settings import ConnectionPoolConfig
from postgres_mcp.models.errors import ErrorCode, PoolError
from postgres_mcp.models.pool import HealthReport, PoolState, PoolStatsSnapshot
from postgres_mcp.models.query import QueryResult
from postgres_mcp.observability.metrics import MetricsCollector, metrics

logger = logging.getLogger(__name__)

PooledConnection: TypeAlias = PoolConnectionProxy

STARTUP_QUERY = "SELECT version()"
HEALTH_QUERY = "SELECT version() AS version, current_database() AS current_database"

NOT_INITIALIZED_MESSAGE = "Pool not initialized"
SHUTTING_DOWN_MESSAGE = "Pool is shutting down"


def parse_command_status(status: str | None) -> tuple[str | None, int | None]:
    """Split a PostgreSQL command tag into its verb and row count.

    Args:
        status: Command tag reported by the server, e.g. ``"INSERT 0 3"``,
            ``"UPDATE 2"`` or ``"CREATE TABLE"``.

    Returns:
        tuple: ``(command, rows_affected)``; the count is None for commands
            that do not report one.

    Example:
        >>> parse_command_status("INSERT 0 3")
        ('INSERT', 3)
        >>> parse_command_status("CREATE TABLE")
        ('CREATE', None)
    """
    if not status:
        return None, None

    parts = status.split()
    count = int(parts[-1]) if len(parts) > 1 and parts[-1].isdigit() else None
    return parts[0].upper(), count


class ConnectionPool:
    """Lifecycle-managed PostgreSQL connection pool.

    One instance owns one asyncpg pool. Callers either run statements through
    :meth:`query` or lease a connection with :meth:`get_connection` /
    :meth:`release_connection` (or the :meth:`connection` context manager).
    Mutual exclusion over the connection set is left to asyncpg.

    Example:
        >>> pool = ConnectionPool(ConnectionPoolConfig(database="mydb"))
        >>> await pool.initialize()
        >>> result = await pool.query("SELECT * FROM users WHERE id = $1", [42])
        >>> await pool.shutdown()
    """

    def __init__(
        self,
        config: ConnectionPoolConfig,
        metrics_collector: MetricsCollector | None = None,
    ) -> None:
        """Initialize the pool wrapper without opening any connection.

        Args:
            config: Connection and pool sizing configuration.
            metrics_collector: Metrics sink (defaults to the process singleton).
        """
        self.config = config
        self.metrics = metrics_collector or metrics
        self._pool: Pool | None = None
        self._state = PoolState.UNINITIALIZED
        self._total_queries = 0
        self._waiting = 0
        self._init_lock = asyncio.Lock()
        self._shutdown_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> PoolState:
        """Current lifecycle state."""
        return self._state

    def is_initialized(self) -> bool:
        """Whether the pool is ready to serve connections."""
        return self._state is PoolState.READY

    def is_closing(self) -> bool:
        """Whether shutdown has started (draining or closed)."""
        return self._state in (PoolState.DRAINING, PoolState.CLOSED)

    async def initialize(self) -> None:
        """Create the underlying pool and verify the server is reachable.

        Calling this on a ready pool logs a warning and does nothing.

        Raises:
            PoolError: ``POOL_INIT_FAILED`` if the test connection or its test
                query fails (the pool stays uninitialized and may be
                initialized again), ``POOL_CLOSED`` if the pool was shut down.
        """
        async with self._init_lock:
            if self._state is PoolState.READY:
                logger.warning("Connection pool already initialized, skipping")
                return

            if self.is_closing():
                raise PoolError(
                    message="Pool has been shut down and cannot be re-initialized",
                    code=ErrorCode.POOL_CLOSED,
                    details={"state": str(self._state)},
                )

            self._state = PoolState.INITIALIZING
            logger.info(
                f"Initializing connection pool for {self.config.safe_dsn}",
                extra={"min_size": self.config.pool.min, "max_size": self.config.pool.max},
            )

            pool: Pool | None = None
            try:
                pool = await self._create_pool()
                version = await self._check_server(pool)
            except BaseException as e:
                self._state = PoolState.UNINITIALIZED
                if pool is not None:
                    self._terminate(pool)
                if not isinstance(e, Exception):
                    raise
                logger.error(f"Failed to initialize connection pool: {e!s}")
                raise PoolError(
                    message=f"Failed to initialize connection pool: {e!s}",
                    code=ErrorCode.POOL_INIT_FAILED,
                    details={"dsn": self.config.safe_dsn, "error_type": type(e).__name__},
                ) from e

            self._pool = pool
            self._state = PoolState.READY
            logger.info(f"Connection pool ready ({version})")

    async def _create_pool(self) -> Pool:
        sizing = self.config.pool
        pool = await asyncpg.create_pool(
            host=self.config.host,
            port=self.config.port,
            user=self.config.user,
            password=self.config.password,
            database=self.config.database,
            ssl=self.config.ssl,
            min_size=sizing.min,
            max_size=sizing.max,
            max_inactive_connection_lifetime=sizing.idle_timeout,
            timeout=sizing.acquire_timeout,
            command_timeout=self.config.command_timeout,
            init=self._on_connect,
            setup=self._on_acquire,
        )
        if pool is None:
            raise RuntimeError(f"Failed to create connection pool for {self.config.database}")
        return pool

    async def _check_server(self, pool: Pool) -> str:
        """Run the startup query on one leased connection."""
        conn = await pool.acquire(timeout=self.config.pool.acquire_timeout)
        try:
            return await conn.fetchval(STARTUP_QUERY)
        finally:
            await pool.release(conn)

    def _require_ready(self) -> Pool:
        """Return the live pool or fail fast with the lifecycle error."""
        if self.is_closing():
            raise PoolError(
                message=SHUTTING_DOWN_MESSAGE,
                code=ErrorCode.POOL_SHUTTING_DOWN,
                details={"state": str(self._state)},
            )
        if self._state is not PoolState.READY or self._pool is None:
            raise PoolError(
                message=NOT_INITIALIZED_MESSAGE,
                code=ErrorCode.POOL_NOT_INITIALIZED,
                details={"state": str(self._state)},
            )
        return self._pool

    async def get_connection(self) -> PooledConnection:
        """Lease a connection for exclusive use.

        The caller must hand it back with :meth:`release_connection`.

        Returns:
            PooledConnection: The leased connection.

        Raises:
            PoolError: If the pool is not ready, or no connection became
                available within ``pool.acquire_timeout`` seconds.
        """
        pool = self._require_ready()
        timeout = self.config.pool.acquire_timeout

        self._waiting += 1
        try:
            return await pool.acquire(timeout=timeout)
        except TimeoutError as e:
            self.metrics.increment_connection_event("error")
            raise PoolError(
                message=(
                    f"Timed out after {timeout}s waiting for a connection "
                    f"(pool exhausted, max {self.config.pool.max})"
                ),
                code=ErrorCode.POOL_ACQUIRE_TIMEOUT,
                details={"timeout_seconds": timeout, "max_size": self.config.pool.max},
            ) from e
        except asyncpg.InterfaceError as e:
            # asyncpg rejects waiters once close() has started
            if self.is_closing():
                raise PoolError(
                    message=SHUTTING_DOWN_MESSAGE,
                    code=ErrorCode.POOL_SHUTTING_DOWN,
                    details={"state": str(self._state)},
                ) from e
            raise
        finally:
            self._waiting -= 1

    async def release_connection(self, conn: PooledConnection) -> None:
        """Return a leased connection to the idle set.

        Must be called exactly once per lease. A second release of the same
        connection is not guarded here; asyncpg raises ``InterfaceError``.

        Raises:
            PoolError: If the pool was never initialized.
        """
        if self._pool is None:
            raise PoolError(
                message=NOT_INITIALIZED_MESSAGE,
                code=ErrorCode.POOL_NOT_INITIALIZED,
                details={"state": str(self._state)},
            )
        await self._pool.release(conn)
        self.metrics.increment_connection_event("release")
        logger.debug("Connection released to pool")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[PooledConnection]:
        """Lease a connection for the duration of an ``async with`` block.

        Example:
            >>> async with pool.connection() as conn:
            ...     await conn.execute("VACUUM ANALYZE users")
        """
        conn = await self.get_connection()
        try:
            yield conn
        finally:
            await self.release_connection(conn)

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Execute one statement with positional parameters.

        The connection is leased and released automatically. Every call that
        passes the lifecycle check is counted once, whether it succeeds or not.

        Args:
            sql: Statement using ``$1, $2, ...`` placeholders.
            params: Positional parameter values.

        Returns:
            QueryResult: Rows (None for statements without a result set),
                command verb, affected row count and execution time.

        Every statement goes through the extended protocol (prepare, then
        fetch), so ``sql`` must hold a single statement. Several
        semicolon-separated statements are rejected by the server with
        ``PostgresSyntaxError`` even when ``params`` is empty.

        Raises:
            PoolError: If the pool is not ready or acquisition timed out.
            asyncpg.PostgresError: Driver errors propagate unchanged.
        """
        self._require_ready()
        self._total_queries += 1
        args = tuple(params or ())

        async with self.connection() as conn:
            start = time.perf_counter()
            try:
                statement = await conn.prepare(sql)
                records = await statement.fetch(*args)
            except Exception:
                self.metrics.observe_query("error", time.perf_counter() - start)
                raise
            elapsed = time.perf_counter() - start
            self.metrics.observe_query("success", elapsed)

            command, rows_affected = parse_command_status(statement.get_statusmsg())
            rows = [dict(record) for record in records] if statement.get_attributes() else None

        return QueryResult(
            rows=rows,
            rows_affected=rows_affected,
            command=command,
            execution_time_ms=round(elapsed * 1000, 3),
        )

    def get_stats(self) -> PoolStatsSnapshot:
        """Take a snapshot of the pool counters without any I/O.

        Returns:
            PoolStatsSnapshot: Counters with ``active = total - idle``.
        """
        total = idle = 0
        if self._pool is not None:
            total = self._pool.get_size()
            idle = self._pool.get_idle_size()

        snapshot = PoolStatsSnapshot(
            total=total,
            active=total - idle,
            idle=idle,
            waiting=self._waiting,
            total_queries=self._total_queries,
        )
        self.metrics.set_pool_connections(
            total=snapshot.total,
            active=snapshot.active,
            idle=snapshot.idle,
            waiting=snapshot.waiting,
        )
        return snapshot

    async def check_health(self) -> HealthReport:
        """Query the database and report the result.

        Never raises: an unready pool or a failing health query is reported as
        ``connected=False`` with the reason in ``error``.

        Returns:
            HealthReport: Fresh health verdict.
        """
        if self.is_closing():
            return HealthReport(connected=False, error=SHUTTING_DOWN_MESSAGE)
        if self._state is not PoolState.READY or self._pool is None:
            return HealthReport(connected=False, error=NOT_INITIALIZED_MESSAGE)

        pool = self._pool
        timeout = self.config.pool.acquire_timeout
        try:
            # Pool.fetchrow() would wait for a free connection without a limit
            conn = await pool.acquire(timeout=timeout)
        except TimeoutError:
            logger.warning(f"Health check timed out after {timeout}s waiting for a connection")
            return HealthReport(
                connected=False,
                error=f"Timed out after {timeout}s waiting for a connection",
            )
        except Exception as e:
            logger.warning(f"Health check failed: {e!s}")
            return HealthReport(connected=False, error=str(e) or type(e).__name__)

        start = time.perf_counter()
        try:
            row = await conn.fetchrow(HEALTH_QUERY, timeout=timeout)
        except Exception as e:
            logger.warning(f"Health check failed: {e!s}")
            return HealthReport(connected=False, error=str(e) or type(e).__name__)
        finally:
            await pool.release(conn)

        latency = time.perf_counter() - start
        self.metrics.observe_health_check_latency(latency)

        return HealthReport(
            connected=True,
            latency_ms=round(latency * 1000, 3),
            pool_stats=self.get_stats(),
            version=row["version"] if row else None,
            database=row["current_database"] if row else None,
        )

    async def shutdown(self) -> None:
        """Stop accepting work, drain in-flight work and close all connections.

        Safe to call on a pool that never started, and safe to call from
        several tasks at once: they all wait on the same drain, so the
        underlying pool is closed exactly once. A call made while
        :meth:`initialize` is running waits for it and then drains whatever
        it opened. Never raises; close failures are logged.
        """
        if self._shutdown_task is None and self._state is PoolState.INITIALIZING:
            logger.info("Shutdown requested during initialization, waiting for it to finish")
            async with self._init_lock:
                pass

        if self._shutdown_task is None:
            if self._state is not PoolState.READY:
                logger.debug(f"Shutdown requested while pool is {self._state}, nothing to close")
                return

            self._state = PoolState.DRAINING
            logger.info("Connection pool draining")
            self._shutdown_task = asyncio.create_task(self._drain())

        await asyncio.shield(self._shutdown_task)

    async def _drain(self) -> None:
        pool = self._pool
        timeout = self.config.pool.drain_timeout
        try:
            if pool is not None:
                await asyncio.wait_for(pool.close(), timeout=timeout)
                logger.info("Connection pool closed gracefully")
        except TimeoutError:
            logger.warning(f"Graceful close timed out after {timeout}s, forcing termination")
            self._terminate(pool)
        except Exception as e:
            logger.error(f"Error closing connection pool: {e!s}")
            self._terminate(pool)
        finally:
            self._state = PoolState.CLOSED

    def _terminate(self, pool: Pool | None) -> None:
        if pool is None:
            return
        try:
            pool.terminate()
        except Exception:
            logger.exception("Error terminating connection pool")

    # asyncpg callbacks, registered once when the pool is created

    async def _on_connect(self, conn: asyncpg.Connection) -> None:
        self.metrics.increment_connection_event("connect")
        conn.add_termination_listener(self._on_remove)
        logger.debug("New connection established")

    async def _on_acquire(self, conn: PooledConnection) -> None:
        self.metrics.increment_connection_event("acquire")
        logger.debug("Connection acquired from pool")

    def _on_remove(self, conn: asyncpg.Connection) -> None:
        self.metrics.increment_connection_event("remove")
        logger.debug("Connection removed from pool")

    def __repr__(self) -> str:
        return f"ConnectionPool(state={self._state}, dsn={self.config.safe_dsn!r})"
