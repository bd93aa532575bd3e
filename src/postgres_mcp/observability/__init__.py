"""Observability module for PostgreSQL MCP Server.

This module provides:
- Prometheus metrics for the connection pool
- Structured logging to stderr with sensitive data redaction

Example:
    >>> from postgres_mcp.observability import configure_logging, metrics
    >>>
    >>> configure_logging(level="INFO", log_format="json")
    >>> metrics.start_metrics_server(9090)
"""

from postgres_mcp.observability.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    TextFormatter,
    configure_logging,
    redact_dsn,
)
from postgres_mcp.observability.metrics import MetricsCollector, metrics

__all__ = [
    # Metrics
    "MetricsCollector",
    "metrics",
    # Logging
    "configure_logging",
    "redact_dsn",
    "JSONFormatter",
    "TextFormatter",
    "SensitiveDataFilter",
]
