"""MCP server initialization using FastMCP.

This module creates the FastMCP server instance, registers the query tools
and pool resources, and manages the connection pool through the server
lifespan. The pool is created once per server run and reaches every handler
through the lifespan context, never through module globals.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import anyio
from fastmcp import Context, FastMCP

from postgres_mcp import __version__
from postgres_mcp.config.settings import Settings, get_settings
from postgres_mcp.db.pool import ConnectionPool
from postgres_mcp.observability.logging import configure_logging
from postgres_mcp.observability.metrics import metrics
from postgres_mcp.resources.pool import health_resource, pool_resource
from postgres_mcp.services.query_executor import QueryExecutor
from postgres_mcp.tools.core import read_query, write_query

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Resources shared by all handlers for one server run."""

    pool: ConnectionPool
    executor: QueryExecutor
    settings: Settings


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage the connection pool for the lifetime of the server.

    Startup loads settings, configures logging and metrics, and initializes
    the pool; exit always shuts the pool down, even when the server is
    cancelled by a signal.

    Args:
        server: The FastMCP server instance.

    Yields:
        AppContext with the initialized pool and executor.
    """
    settings = get_settings()
    observability = settings.observability
    configure_logging(level=observability.log_level, log_format=observability.log_format)

    if observability.metrics_enabled:
        metrics.start_metrics_server(observability.metrics_port)
        logger.info(f"Metrics server listening on port {observability.metrics_port}")

    pool = ConnectionPool(settings.pool_config())
    try:
        await pool.initialize()
        logger.info(f"postgres-mcp {__version__} ready")
        yield AppContext(pool=pool, executor=QueryExecutor(pool), settings=settings)
    finally:
        logger.info("Shutting down...")
        with anyio.CancelScope(shield=True):
            await pool.shutdown()


mcp = FastMCP("postgres-mcp", lifespan=lifespan)


def _app(ctx: Context) -> AppContext:
    return ctx.request_context.lifespan_context


async def pg_read_query(
    ctx: Context,
    sql: str,
    params: list[Any] | None = None,
) -> dict[str, Any]:
    """Execute a read-only SQL query (SELECT, WITH). Returns rows as JSON.

    Args:
        sql: Query using $1, $2, ... placeholders.
        params: Values for the placeholders, in order.
    """
    return await read_query(_app(ctx).executor, sql, params)


async def pg_write_query(
    ctx: Context,
    sql: str,
    params: list[Any] | None = None,
) -> dict[str, Any]:
    """Execute a write SQL query (INSERT, UPDATE, DELETE). Returns affected row count.

    Args:
        sql: Statement using $1, $2, ... placeholders.
        params: Values for the placeholders, in order.
    """
    return await write_query(_app(ctx).executor, sql, params)


async def pool_stats(ctx: Context) -> dict[str, Any]:
    """MCP server connection pool statistics."""
    return await pool_resource(_app(ctx).pool)


async def pool_health(ctx: Context) -> dict[str, Any]:
    """Database reachability and health check latency."""
    return await health_resource(_app(ctx).pool)


mcp.tool(name="pg_read_query")(pg_read_query)
mcp.tool(name="pg_write_query")(pg_write_query)
mcp.resource("postgres://pool", name="Connection Pool", mime_type="application/json")(pool_stats)
mcp.resource("postgres://health", name="Database Health", mime_type="application/json")(
    pool_health
)
