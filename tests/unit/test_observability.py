"""Unit tests for logging and metrics."""

import json
import logging
import sys
from collections.abc import Iterator

import pytest
from prometheus_client import REGISTRY

from postgres_mcp.db.pool import ConnectionPool
from postgres_mcp.observability.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    TextFormatter,
    configure_logging,
    redact_dsn,
)
from postgres_mcp.observability.metrics import MetricsCollector, metrics


def make_record(msg: str, *args: object, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="postgres_mcp.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args or None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRedaction:
    """Test credential masking."""

    def test_redact_dsn(self) -> None:
        """Test that URL passwords are masked."""
        assert redact_dsn("postgres://app:hunter2@db:5432/prod") == "postgres://app:***@db:5432/prod"

    def test_redact_dsn_without_password(self) -> None:
        """Test that URLs without credentials are untouched."""
        assert redact_dsn("postgres://db:5432/prod") == "postgres://db:5432/prod"

    def test_filter_masks_message(self) -> None:
        """Test that connection strings in the message are masked."""
        record = make_record("Connecting to postgresql://app:hunter2@db/prod")

        SensitiveDataFilter().filter(record)

        assert "hunter2" not in record.getMessage()

    def test_filter_masks_sensitive_extra(self) -> None:
        """Test that sensitive extra keys are redacted."""
        record = make_record("login", password="hunter2", database="prod")

        assert SensitiveDataFilter().filter(record) is True
        assert record.password == "***REDACTED***"
        assert record.database == "prod"

    def test_filter_masks_nested_args(self) -> None:
        """Test that mapping arguments are sanitized recursively."""
        record = make_record("config %s", {"dsn": "postgres://a:b@h/d", "token": "t"})

        SensitiveDataFilter().filter(record)

        assert record.args == {"dsn": "postgres://a:***@h/d", "token": "***REDACTED***"}


class TestFormatters:
    """Test log formatters."""

    def test_json_formatter(self) -> None:
        """Test the JSON line layout."""
        record = make_record("Connection pool ready", max_size=10)

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "postgres_mcp.test"
        assert data["message"] == "Connection pool ready"
        assert data["extra"] == {"max_size": 10}

    def test_text_formatter_appends_extra(self) -> None:
        """Test that extras are appended to the text line."""
        record = make_record("Connection pool ready", max_size=10)

        line = TextFormatter().format(record)

        assert "[INFO] postgres_mcp.test - Connection pool ready" in line
        assert line.endswith('{"max_size": 10}')

    def test_configure_logging_writes_to_stderr(self, restore_root_logger: None) -> None:
        """Test that logging never touches stdout."""
        configure_logging(level="DEBUG", log_format="json")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr
        assert isinstance(handler.formatter, JSONFormatter)
        assert any(isinstance(f, SensitiveDataFilter) for f in handler.filters)
        assert root.level == logging.DEBUG
        assert logging.getLogger("asyncpg").level == logging.WARNING


class TestMetrics:
    """Test Prometheus metrics."""

    def test_singleton(self) -> None:
        """Test that the collector is registered once."""
        assert MetricsCollector() is metrics

    def test_observe_query(self) -> None:
        """Test query counting by status."""
        before = REGISTRY.get_sample_value(
            "postgres_mcp_pool_queries_total", {"status": "success"}
        ) or 0.0

        metrics.observe_query("success", 0.002)

        after = REGISTRY.get_sample_value("postgres_mcp_pool_queries_total", {"status": "success"})
        assert after == before + 1

    @pytest.mark.asyncio
    async def test_pool_publishes_occupancy(self, pool: ConnectionPool) -> None:
        """Test that stats snapshots update the occupancy gauges."""
        await pool.initialize()
        conn = await pool.get_connection()

        pool.get_stats()

        assert REGISTRY.get_sample_value("postgres_mcp_pool_connections", {"state": "active"}) == 1
        await pool.release_connection(conn)
