"""Connection pool state and reporting models.

This module defines the lifecycle states of the connection pool and the
read-only snapshots it hands out to monitoring callers.
"""

from enum import StrEnum, auto

from pydantic import BaseModel, ConfigDict, Field


class PoolState(StrEnum):
    """Connection pool lifecycle states."""

    UNINITIALIZED = auto()
    INITIALIZING = auto()
    READY = auto()
    DRAINING = auto()
    CLOSED = auto()


class PoolStatsSnapshot(BaseModel):
    """Point-in-time projection of the pool counters."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0, description="Open physical connections")
    active: int = Field(default=0, ge=0, description="Connections currently leased")
    idle: int = Field(default=0, ge=0, description="Open connections not leased")
    waiting: int = Field(default=0, ge=0, description="Callers waiting for a connection")
    total_queries: int = Field(
        default=0, ge=0, description="Cumulative query() calls on this pool"
    )


class HealthReport(BaseModel):
    """Result of a single health check.

    A report is built fresh on every check. ``connected`` is False whenever the
    pool is not ready or the test query failed, in which case ``error``
    carries the reason.
    """

    model_config = ConfigDict(frozen=True)

    connected: bool = Field(..., description="Whether the test query succeeded")
    latency_ms: float | None = Field(None, ge=0, description="Health query round-trip time")
    error: str | None = Field(None, description="Reason the pool is unhealthy")
    pool_stats: PoolStatsSnapshot | None = Field(None, description="Pool counters")
    version: str | None = Field(None, description="Server version string")
    database: str | None = Field(None, description="Current database name")
