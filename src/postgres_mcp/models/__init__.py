"""Data models module."""

from postgres_mcp.models.errors import (
    ErrorCode,
    ErrorDetail,
    PoolError,
    PostgresMcpError,
)
from postgres_mcp.models.pool import HealthReport, PoolState, PoolStatsSnapshot
from postgres_mcp.models.query import QueryResult

__all__ = [
    # Pool models
    "PoolState",
    "PoolStatsSnapshot",
    "HealthReport",
    # Query models
    "QueryResult",
    # Error models
    "ErrorCode",
    "ErrorDetail",
    "PostgresMcpError",
    "PoolError",
]
