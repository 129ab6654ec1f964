"""
Prometheus Metrics for Zeebe Containers

Exposes metrics for:
- Container starts, failures and stops per role
- Start latency including readiness waiting
- Volume creation and removal
"""

from prometheus_client import (
    Counter, Histogram,
    CollectorRegistry, generate_latest,
    CONTENT_TYPE_LATEST
)

# Dedicated registry so test suites can scrape it without global collisions
REGISTRY = CollectorRegistry()

# ============================================================================
# Container Lifecycle Metrics
# ============================================================================

CONTAINER_STARTS_TOTAL = Counter(
    'zeebe_containers_starts_total',
    'Total container start attempts',
    ['role', 'outcome'],  # outcome: success, failed
    registry=REGISTRY
)

CONTAINER_STOPS_TOTAL = Counter(
    'zeebe_containers_stops_total',
    'Total container stops',
    ['role', 'outcome'],
    registry=REGISTRY
)

CONTAINER_START_LATENCY = Histogram(
    'zeebe_containers_start_latency_seconds',
    'Time from container create until the node reported ready',
    ['role'],
    buckets=(1, 5, 10, 30, 60, 120, 300),
    registry=REGISTRY
)

# ============================================================================
# Volume Metrics
# ============================================================================

VOLUME_OPERATIONS_TOTAL = Counter(
    'zeebe_containers_volume_operations_total',
    'Total volume operations',
    ['operation', 'outcome'],  # operation: create, reuse, remove
    registry=REGISTRY
)


# ============================================================================
# Helper Functions
# ============================================================================

def record_start(role: str, success: bool, elapsed: float = None):
    """Record the outcome of a container start."""
    CONTAINER_STARTS_TOTAL.labels(
        role=role, outcome="success" if success else "failed"
    ).inc()
    if success and elapsed is not None:
        CONTAINER_START_LATENCY.labels(role=role).observe(elapsed)


def record_stop(role: str, success: bool):
    """Record the outcome of a container stop."""
    CONTAINER_STOPS_TOTAL.labels(
        role=role, outcome="success" if success else "failed"
    ).inc()


def record_volume_operation(operation: str, success: bool = True):
    """Record a volume create/reuse/remove."""
    VOLUME_OPERATIONS_TOTAL.labels(
        operation=operation, outcome="success" if success else "failed"
    ).inc()


def get_metrics_text() -> str:
    """Get all metrics in Prometheus text format"""
    return generate_latest(REGISTRY).decode('utf-8')


def get_metrics_content_type() -> str:
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST
