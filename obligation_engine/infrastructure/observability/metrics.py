"""Prometheus metrics for lifecycle operations, schedule generation and HTTP latency"""

from prometheus_client import Counter, Histogram

from obligation_engine.domain.models import ReconciliationPlan

# Lifecycle metrics
operation_counter = Counter(
    "obligation_operation_total",
    "Lifecycle operations by outcome",
    ["operation", "outcome"],  # outcome: ok | not_found | invalid_state | invalid_entry | invalid_recurrence | store_failure
)

generated_entries_counter = Counter(
    "obligation_generated_entries_total",
    "Scheduled entries created by recurrence, installment or reconciliation expansion",
    ["periodicity"],
)

plan_size_histogram = Histogram(
    "obligation_reconciliation_plan_size",
    "Entries touched by a reconciliation plan",
    ["action"],  # create | delete
    buckets=[0, 1, 2, 5, 10, 25, 50, 100, 500],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_operation(operation: str, outcome: str) -> None:
    operation_counter.labels(operation=operation, outcome=outcome).inc()


def record_generated(periodicity: str, count: int) -> None:
    if count:
        generated_entries_counter.labels(periodicity=periodicity).inc(count)


def record_plan(plan: ReconciliationPlan) -> None:
    """Record plan sizes so large reconciliations stand out"""
    plan_size_histogram.labels(action="create").observe(len(plan.to_create))
    plan_size_histogram.labels(action="delete").observe(len(plan.to_delete))
