"""Core query tools.

Handlers for the ``pg_read_query`` and ``pg_write_query`` MCP tools. They
delegate to :class:`QueryExecutor` and turn failures into structured error
payloads instead of raising into the protocol layer.
"""

import logging
from collections.abc import Sequence
from typing import Any

import asyncpg

from postgres_mcp.models.errors import ErrorCode, ErrorDetail, PostgresMcpError
from postgres_mcp.services.query_executor import QueryExecutor

logger = logging.getLogger(__name__)


def error_response(error: Exception) -> dict[str, Any]:
    """Build the failure payload returned to the calling agent.

    Args:
        error: A lifecycle error or a database driver error.

    Returns:
        dict: ``{"success": False, "error": {...}}``.
    """
    if isinstance(error, PostgresMcpError):
        detail = error.to_error_detail()
    else:
        details: dict[str, Any] = {"error_type": type(error).__name__}
        sqlstate = getattr(error, "sqlstate", None)
        if sqlstate:
            details["sqlstate"] = sqlstate
        detail = ErrorDetail(code=ErrorCode.DATABASE_ERROR, message=str(error), details=details)
    return {"success": False, "error": detail.to_dict()}


async def read_query(
    executor: QueryExecutor,
    sql: str,
    params: Sequence[Any] | None = None,
) -> dict[str, Any]:
    """Execute a read-only statement (SELECT, WITH) and return its rows."""
    try:
        result = await executor.execute_read(sql, params)
    except (PostgresMcpError, asyncpg.PostgresError) as e:
        logger.info(f"Read query failed: {e!s}")
        return error_response(e)

    return {
        "success": True,
        "rows": result.rows,
        "row_count": result.row_count,
        "execution_time_ms": result.execution_time_ms,
    }


async def write_query(
    executor: QueryExecutor,
    sql: str,
    params: Sequence[Any] | None = None,
) -> dict[str, Any]:
    """Execute a write statement (INSERT, UPDATE, DELETE) and return the affected row count."""
    try:
        result = await executor.execute_write(sql, params)
    except (PostgresMcpError, asyncpg.PostgresError) as e:
        logger.info(f"Write query failed: {e!s}")
        return error_response(e)

    response: dict[str, Any] = {
        "success": True,
        "rows_affected": result.rows_affected,
        "command": result.command,
        "execution_time_ms": result.execution_time_ms,
    }
    if result.rows:
        response["rows"] = result.rows
    return response
