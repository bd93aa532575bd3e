"""Pool and health resources.

Handlers for the ``postgres://pool`` and ``postgres://health`` MCP resources.
"""

from typing import Any

from postgres_mcp.db.pool import ConnectionPool


async def pool_resource(pool: ConnectionPool) -> dict[str, Any]:
    """Connection pool statistics together with a fresh health check."""
    stats = pool.get_stats()
    health = await pool.check_health()
    return {
        "stats": stats.model_dump(),
        "health": health.model_dump(exclude_none=True),
        "is_initialized": pool.is_initialized(),
    }


async def health_resource(pool: ConnectionPool) -> dict[str, Any]:
    """Database reachability, health check latency and pool counters."""
    health = await pool.check_health()
    return health.model_dump(exclude_none=True)
