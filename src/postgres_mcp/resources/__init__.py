"""MCP resource handlers."""

from postgres_mcp.resources.pool import health_resource, pool_resource

__all__ = [
    "health_resource",
    "pool_resource",
]
