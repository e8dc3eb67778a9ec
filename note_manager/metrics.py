"""Prometheus metrics for the Note Manager.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Store metrics
# ---------------------------------------------------------------------------

STORE_OPERATIONS = Counter(
    "notes_store_operations_total",
    "Total notes store operations",
    ["operation", "status"],  # status: ok, error
)

# ---------------------------------------------------------------------------
# Persistence metrics
# ---------------------------------------------------------------------------

PERSISTENCE_OPERATIONS = Counter(
    "notes_persistence_operations_total",
    "Total persistence backend calls",
    ["backend", "operation", "status"],
)

PERSISTENCE_DURATION = Histogram(
    "notes_persistence_duration_seconds",
    "Duration of persistence backend calls in seconds",
    ["backend", "operation"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0),
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS = Counter(
    "notes_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_DURATION = Histogram(
    "notes_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
)
