"""Prometheus metrics exporters."""

from prometheus_client import Counter, Histogram, start_http_server
from typing import Optional

from orgsync.common.config import get_settings


# Record Metrics
records_read_total = Counter(
    "orgsync_records_read_total",
    "Total number of source records read",
    ["object_type"],
)

records_upserted_total = Counter(
    "orgsync_records_upserted_total",
    "Total number of records written to the destination",
    ["object_type"],
)

records_unchanged_total = Counter(
    "orgsync_records_unchanged_total",
    "Records already present in the destination with no field differences",
    ["object_type"],
)

upsert_cache_hits_total = Counter(
    "orgsync_upsert_cache_hits_total",
    "Records skipped because an identical upsert was already applied",
    ["object_type"],
)

records_failed_total = Counter(
    "orgsync_records_failed_total",
    "Total number of records the destination rejected",
    ["object_type"],
)

# Object Metrics
objects_total = Counter(
    "orgsync_objects_total",
    "Object types processed, by final state",
    ["state"],
)

# Remote Call Metrics
remote_calls_total = Counter(
    "orgsync_remote_calls_total",
    "Total number of remote store calls",
    ["call"],
)

remote_call_duration_seconds = Histogram(
    "orgsync_remote_call_duration_seconds",
    "Time taken by remote store calls",
    ["call"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)


class MetricsExporter:
    """Prometheus metrics exporter."""

    def __init__(self, port: Optional[int] = None) -> None:
        """
        Initialize metrics exporter.

        Args:
            port: Port to expose metrics on (default from config)
        """
        self.settings = get_settings()
        self.port = port or self.settings.observability.metrics_port
        self._server_started = False

    def start(self) -> None:
        """Start metrics HTTP server."""
        if not self._server_started and self.port:
            start_http_server(self.port)
            self._server_started = True

    def record_read(self, object_type: str, count: int = 1) -> None:
        """Record source records read."""
        records_read_total.labels(object_type=object_type).inc(count)

    def record_batch(
        self, object_type: str, upserted: int, unchanged: int, cached: int, failed: int
    ) -> None:
        """
        Record the outcome counters of an upsert batcher.

        Args:
            object_type: Object type name
            upserted: Records written
            unchanged: Records already in sync
            cached: Records skipped through the upsert cache
            failed: Records rejected
        """
        records_upserted_total.labels(object_type=object_type).inc(upserted)
        records_unchanged_total.labels(object_type=object_type).inc(unchanged)
        upsert_cache_hits_total.labels(object_type=object_type).inc(cached)
        records_failed_total.labels(object_type=object_type).inc(failed)

    def record_object(self, state: str) -> None:
        """Record the final state of an object type."""
        objects_total.labels(state=state).inc()

    def record_remote_call(self, call: str, duration: float) -> None:
        """
        Record a remote store call.

        Args:
            call: Call name (describe/query/upsert_one/...)
            duration: Call duration in seconds
        """
        remote_calls_total.labels(call=call).inc()
        remote_call_duration_seconds.labels(call=call).observe(duration)
