"""Read and write query execution.

This module provides the two execution modes used by the tool layer on top of
the pool's single ``query()`` primitive, and converts PostgreSQL-specific
values into JSON-compatible ones.
"""

import datetime
import decimal
import logging
import uuid
from collections.abc import Sequence
from typing import Any

from postgres_mcp.db.pool import ConnectionPool
from postgres_mcp.models.query import QueryResult

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Executes read and write statements through a connection pool.

    The pool is execution-mode agnostic; this class only decides which fields
    of the result envelope are returned to the caller.

    Example:
        >>> executor = QueryExecutor(pool)
        >>> result = await executor.execute_read("SELECT id, name FROM users")
        >>> print(f"Retrieved {result.row_count} rows in {result.execution_time_ms}ms")
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Initialize query executor.

        Args:
            pool: Connection pool used for every statement.
        """
        self.pool = pool

    async def execute_read(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
    ) -> QueryResult:
        """Execute a statement and return its rows.

        Args:
            sql: Statement to execute (``SELECT``, ``WITH``, ...).
            params: Positional parameters for ``$n`` placeholders.

        Returns:
            QueryResult: ``rows`` with JSON-compatible values and
                ``execution_time_ms``.

        Raises:
            PoolError: If the pool cannot serve the query.
            asyncpg.PostgresError: If the database rejects the statement.
        """
        result = await self.pool.query(sql, params)
        rows = serialize_rows(result.rows or [])
        logger.debug(f"Read query returned {len(rows)} rows in {result.execution_time_ms}ms")
        return QueryResult(rows=rows, execution_time_ms=result.execution_time_ms)

    async def execute_write(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
    ) -> QueryResult:
        """Execute a data-modifying statement.

        Args:
            sql: Statement to execute (``INSERT``, ``UPDATE``, ``DELETE``, DDL).
            params: Positional parameters for ``$n`` placeholders.

        Returns:
            QueryResult: ``rows_affected``, ``command`` and
                ``execution_time_ms``; ``rows`` only when the statement
                returned some (``RETURNING``).

        Raises:
            PoolError: If the pool cannot serve the query.
            asyncpg.PostgresError: If the database rejects the statement.
        """
        result = await self.pool.query(sql, params)
        logger.debug(
            f"Write query {result.command} affected {result.rows_affected} rows "
            f"in {result.execution_time_ms}ms"
        )
        return QueryResult(
            rows=serialize_rows(result.rows) if result.rows else None,
            rows_affected=result.rows_affected,
            command=result.command,
            execution_time_ms=result.execution_time_ms,
        )


def serialize_value(value: Any) -> Any:
    """Convert a single PostgreSQL value to a JSON-compatible value.

    - datetime types: ISO format strings
    - timedelta: ``str()`` form
    - decimal.Decimal: float
    - uuid.UUID: string
    - bytes: hexadecimal string
    - lists, tuples and dicts: converted recursively
    """
    if value is None:
        return None

    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()

    if isinstance(value, datetime.timedelta):
        return str(value)

    if isinstance(value, decimal.Decimal):
        return float(value)

    if isinstance(value, uuid.UUID):
        return str(value)

    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()

    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]

    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}

    # str, int, float, bool and anything else pass through
    return value


def serialize_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Serialize every value of every row, keeping column order."""
    return [{key: serialize_value(value) for key, value in row.items()} for row in rows]
