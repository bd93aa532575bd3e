"""Service layer for PostgreSQL MCP Server."""

from postgres_mcp.services.query_executor import QueryExecutor, serialize_rows, serialize_value

__all__ = [
    "QueryExecutor",
    "serialize_rows",
    "serialize_value",
]
