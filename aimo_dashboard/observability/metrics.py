"""Prometheus metric definitions for dashboard self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

REQUEST_DURATION_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 15.0)
POLL_DURATION_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0, 30.0)

# ---------------------------------------------------------------------------
# Request-level metrics
# ---------------------------------------------------------------------------

REQUEST_DURATION = Histogram(
    "aimo_dashboard_request_duration_seconds",
    "End-to-end request duration in seconds",
    labelnames=["endpoint"],
    buckets=REQUEST_DURATION_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "aimo_dashboard_requests_total",
    "Total number of requests",
    labelnames=["endpoint", "status"],
)

# ---------------------------------------------------------------------------
# Polling metrics (populated by the scheduler)
# ---------------------------------------------------------------------------

POLLS_TOTAL = Counter(
    "aimo_dashboard_polls_total",
    "Total number of poll ticks per source",
    labelnames=["source", "status"],
)

POLL_DURATION = Histogram(
    "aimo_dashboard_poll_duration_seconds",
    "Duration of a poll tick (fetch + reconcile) in seconds",
    labelnames=["source"],
    buckets=POLL_DURATION_BUCKETS,
)

SOURCE_HEALTHY = Gauge(
    "aimo_dashboard_source_healthy",
    "Whether the last poll of a source succeeded (1=healthy, 0=error)",
    labelnames=["source"],
)

# ---------------------------------------------------------------------------
# Reconciliation metrics
# ---------------------------------------------------------------------------

COLLECTION_SIZE = Gauge(
    "aimo_dashboard_collection_size",
    "Number of records held per collection",
    labelnames=["collection"],
)

RECONCILE_CHANGES_TOTAL = Counter(
    "aimo_dashboard_reconcile_changes_total",
    "Reconciliations that structurally changed a collection",
    labelnames=["collection"],
)

WEBHOOK_WRITES_TOTAL = Counter(
    "aimo_dashboard_webhook_writes_total",
    "Inbound webhook writes",
    labelnames=["kind", "mode", "status"],
)

# ---------------------------------------------------------------------------
# Info
# ---------------------------------------------------------------------------

APP_INFO = Info(
    "aimo_dashboard",
    "AIMO dashboard build information",
)
