"""Prometheus metrics for savings opportunities, soft-lock decisions and ledger calls"""

from prometheus_client import Counter, Histogram

# Opportunity metrics
analysis_counter = Counter(
    "savings_analysis_total",
    "Savings analyses run",
    ["endpoint"],  # analyze | windfall | sweep
)

opportunity_counter = Counter(
    "savings_opportunity_total",
    "Savings opportunities detected",
    ["kind"],  # windfall | sweep
)

# Soft-lock metrics
withdrawal_decision_counter = Counter(
    "savings_withdrawal_decision_total",
    "Soft-lock withdrawal decisions",
    ["outcome"],  # allowed | cooling_period | new_request_required
)

withdrawal_request_counter = Counter(
    "savings_withdrawal_request_total",
    "Withdrawal cooling periods started",
)

# Ledger metrics
ledger_transfer_latency_histogram = Histogram(
    "ledger_transfer_latency_seconds",
    "Ledger transfer response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ledger_transfer_failure_counter = Counter(
    "ledger_transfer_failures_total",
    "Failed ledger transfer attempts",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_opportunities(endpoint: str, kinds: list[str]) -> None:
    """Count one analysis and each opportunity it surfaced"""
    analysis_counter.labels(endpoint=endpoint).inc()
    for kind in kinds:
        opportunity_counter.labels(kind=kind).inc()


def record_withdrawal_decision(allowed: bool, reason: str | None) -> None:
    outcome = "allowed" if allowed else (reason or "denied")
    withdrawal_decision_counter.labels(outcome=outcome).inc()
