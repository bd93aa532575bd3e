"""Prometheus metrics collector for PostgreSQL MCP Server.

This module tracks connection pool activity using prometheus_client: query
counts and durations, connection lifecycle events, pool occupancy and health
health check latency.
"""

from prometheus_client import Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    """Centralized metrics collector using Prometheus client.

    The collector is a process-wide singleton because Prometheus metrics can
    only be registered once per registry.

    Example:
        >>> metrics = MetricsCollector()
        >>> metrics.observe_query(status="success", duration=0.004)
    """

    _instance: "MetricsCollector | None" = None

    def __new__(cls) -> "MetricsCollector":
        """Ensure singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize_metrics()
        return cls._instance

    def _initialize_metrics(self) -> None:
        self.pool_queries: Counter = Counter(
            "postgres_mcp_pool_queries_total",
            "Total number of queries executed through the connection pool",
            labelnames=["status"],
        )

        self.pool_query_duration: Histogram = Histogram(
            "postgres_mcp_pool_query_duration_seconds",
            "Query execution duration in seconds",
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
        )

        self.pool_connection_events: Counter = Counter(
            "postgres_mcp_pool_connection_events_total",
            "Connection lifecycle events (connect, acquire, release, remove, error)",
            labelnames=["event"],
        )

        self.pool_connections: Gauge = Gauge(
            "postgres_mcp_pool_connections",
            "Connection pool occupancy by state",
            labelnames=["state"],
        )

        self.health_check_latency: Histogram = Histogram(
            "postgres_mcp_health_check_latency_seconds",
            "Health check round-trip latency in seconds",
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
        )

    def start_metrics_server(self, port: int) -> None:
        """Start the Prometheus metrics HTTP server.

        Args:
            port: Port number to listen on for metrics scraping.
        """
        start_http_server(port)

    def observe_query(self, status: str, duration: float) -> None:
        """Record one query.

        Args:
            status: ``success`` or ``error``.
            duration: Execution time in seconds.
        """
        self.pool_queries.labels(status=status).inc()
        self.pool_query_duration.observe(duration)

    def increment_connection_event(self, event: str) -> None:
        """Count a connection lifecycle event.

        Args:
            event: Event name (connect, acquire, release, remove, error).
        """
        self.pool_connection_events.labels(event=event).inc()

    def set_pool_connections(self, total: int, active: int, idle: int, waiting: int) -> None:
        """Publish pool occupancy gauges."""
        self.pool_connections.labels(state="total").set(total)
        self.pool_connections.labels(state="active").set(active)
        self.pool_connections.labels(state="idle").set(idle)
        self.pool_connections.labels(state="waiting").set(waiting)

    def observe_health_check_latency(self, duration: float) -> None:
        """Record health check latency in seconds."""
        self.health_check_latency.observe(duration)


# Singleton instance
metrics = MetricsCollector()
