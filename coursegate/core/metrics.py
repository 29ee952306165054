"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own the
behaviour import and increment them.

  Counter   -- only goes up (requests served, payments attempted)
  Gauge     -- goes up and down (requests in flight)
  Histogram -- bucketed observations, used for latency percentiles
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Payment requests include simulated provider latency (1.5-3s),
    # so the upper buckets matter here.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Entitlement and payment metrics
# ---------------------------------------------------------------------------

ACCESS_DECISIONS = Counter(
    "access_decisions_total",
    "Entitlement checks by outcome reason",
    ["reason"],  # allowed|course_not_found|not_registered|access_expired|payment_incomplete
)

PAYMENT_ATTEMPTS = Counter(
    "payment_attempts_total",
    "Payment attempts by method and outcome",
    ["method", "outcome"],  # outcome: completed|failed|conflict
)

PROVIDER_LATENCY = Histogram(
    "payment_provider_latency_seconds",
    "Time spent waiting on a payment provider",
    ["method"],
    buckets=[0.01, 0.1, 0.5, 1.0, 1.5, 2.0, 3.0, 5.0],
)

REGISTRATION_CONFLICTS = Counter(
    "registration_conflicts_total",
    "Registration attempts rejected because one already exists",
)

REFUNDS = Counter(
    "refunds_total",
    "Payments refunded by an admin",
)

STALE_PAYMENTS_FAILED = Counter(
    "stale_payments_failed_total",
    "Processing payments marked failed by reconciliation",
)
