"""MCP tool handlers."""

from postgres_mcp.tools.core import error_response, read_query, write_query

__all__ = [
    "error_response",
    "read_query",
    "write_query",
]
