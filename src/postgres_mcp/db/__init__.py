"""Database connection pool.

This package provides the lifecycle-managed asyncpg connection pool used by
every tool and resource handler.
"""

from postgres_mcp.db.pool import ConnectionPool, PooledConnection, parse_command_status

__all__ = [
    "ConnectionPool",
    "PooledConnection",
    "parse_command_status",
]
