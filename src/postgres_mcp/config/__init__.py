"""Configuration management module."""

from postgres_mcp.config.settings import (
    ConnectionPoolConfig,
    ObservabilityConfig,
    PoolSizing,
    Settings,
    get_settings,
    reset_settings,
)

__all__ = [
    "ConnectionPoolConfig",
    "ObservabilityConfig",
    "PoolSizing",
    "Settings",
    "get_settings",
    "reset_settings",
]
