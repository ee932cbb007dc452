"""
Prometheus metrics for betfeed.

Metrics exposed:
- Sync cycle counters and duration histogram per game type
- Per-event sync outcomes (new, updated, skipped, error)
- Results stored per game type
- Upstream feed request counters by endpoint and outcome
- Booking outcomes
- Number of armed sync jobs
"""
from prometheus_client import Counter, Gauge, Histogram

# Sync Metrics
sync_cycles_total = Counter(
    "betfeed_sync_cycles_total",
    "Total sync cycles executed",
    ["game_type", "status"]
)

sync_cycle_duration_seconds = Histogram(
    "betfeed_sync_cycle_duration_seconds",
    "Sync cycle duration in seconds",
    ["game_type"]
)

sync_events_total = Counter(
    "betfeed_sync_events_total",
    "Events handled by sync cycles",
    ["game_type", "outcome"]  # new, updated, skipped, error
)

sync_results_stored_total = Counter(
    "betfeed_sync_results_stored_total",
    "Game results written by the sync loop or finishing sweep",
    ["game_type"]
)

sync_jobs_armed = Gauge(
    "betfeed_sync_jobs_armed",
    "Number of armed per-game sync jobs"
)

# Upstream Feed Metrics
feed_requests_total = Counter(
    "betfeed_feed_requests_total",
    "Upstream feed requests",
    ["endpoint", "outcome"]  # success, failure
)

# Booking Metrics
bookings_total = Counter(
    "betfeed_bookings_total",
    "Booking requests by outcome",
    ["outcome"]  # accepted, rejected_legs, malformed, storage_error
)


def record_sync_cycle(game_type: str, success: bool, duration_seconds: float) -> None:
    """Record one completed sync cycle."""
    sync_cycles_total.labels(game_type=game_type, status="success" if success else "failed").inc()
    sync_cycle_duration_seconds.labels(game_type=game_type).observe(duration_seconds)


def record_sync_event(game_type: str, outcome: str) -> None:
    """Record the outcome of one event within a cycle."""
    sync_events_total.labels(game_type=game_type, outcome=outcome).inc()


def record_feed_request(endpoint: str, success: bool) -> None:
    """Record an upstream request outcome."""
    feed_requests_total.labels(endpoint=endpoint, outcome="success" if success else "failure").inc()
