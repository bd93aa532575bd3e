"""PostgreSQL MCP Server - connection pool and query tools.

A Model Context Protocol server that exposes PostgreSQL query execution and
connection pool monitoring to AI agents over a lifecycle-managed asyncpg pool.
"""

__version__ = "0.1.0"

from postgres_mcp.config.settings import ConnectionPoolConfig, Settings, get_settings
from postgres_mcp.db.pool import ConnectionPool
from postgres_mcp.models.errors import ErrorCode, PoolError, PostgresMcpError
from postgres_mcp.models.pool import HealthReport, PoolState, PoolStatsSnapshot
from postgres_mcp.models.query import QueryResult
from postgres_mcp.services.query_executor import QueryExecutor

__all__ = [
    "__version__",
    # Config
    "ConnectionPoolConfig",
    "Settings",
    "get_settings",
    # Pool
    "ConnectionPool",
    "QueryExecutor",
    # Models
    "PoolState",
    "PoolStatsSnapshot",
    "HealthReport",
    "QueryResult",
    # Errors
    "PostgresMcpError",
    "PoolError",
    "ErrorCode",
]
