"""Prometheus metrics for Toolgate."""

from prometheus_client import Counter, Histogram

GATEWAY_REQUESTS = Counter(
    "toolgate_gateway_requests_total",
    "JSON-RPC requests handled by the gateway",
    labelnames=["method", "status"],
)

CAPABILITY_CALLS = Counter(
    "toolgate_capability_calls_total",
    "Capability invocations by outcome",
    labelnames=["capability", "outcome"],
)

CAPABILITY_DURATION = Histogram(
    "toolgate_capability_duration_seconds",
    "Capability execution time in seconds",
    labelnames=["capability"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

RATE_LIMIT_EXCEEDED = Counter(
    "toolgate_rate_limit_exceeded_total",
    "Requests rejected by the sliding window limiter",
    labelnames=["method"],
)

QUOTA_EXCEEDED = Counter(
    "toolgate_quota_exceeded_total",
    "Invocations over the weekly quota",
    labelnames=["tier", "action"],
)

BEST_EFFORT_FAILURES = Counter(
    "toolgate_best_effort_failures_total",
    "Fire-and-forget tasks that failed or were dropped",
    labelnames=["task", "reason"],
)

DISCOVERY_CANDIDATES = Histogram(
    "toolgate_discovery_candidates",
    "Candidates scored per discovery request",
    labelnames=["mode"],
    buckets=(0, 1, 2, 5, 10, 20, 50, 100, 200),
)

GRANT_CHECKS = Counter(
    "toolgate_grant_checks_total",
    "Grant checks on the invocation path",
    labelnames=["result"],
)
