"""Prometheus metrics for gateway observability.

Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Upstream
upstream_requests_total = Counter(
    "upstream_requests_total",
    "Total requests sent to the ROOK API",
    ["method", "status"],  # status: HTTP code or "transport_error"
)

upstream_duration_seconds = Histogram(
    "upstream_duration_seconds",
    "Duration of ROOK API calls",
    ["method"],
)

# Core
snapshot_cache_lookups_total = Counter(
    "snapshot_cache_lookups_total",
    "Health snapshot cache lookups",
    ["category", "result"],  # result: hit, miss
)

profile_writes_total = Counter(
    "profile_writes_total",
    "Merge-upserts applied to user profiles",
    ["operation"],  # submit_profile, set_time_zone, get_profile
)

# API
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
