"""Prometheus metrics for portal transactions"""

from prometheus_client import Counter, Histogram


# Transaction metrics
transactions_total = Counter(
    'portal_transactions_total',
    'Total number of portal transactions',
    ['operation', 'outcome']
)

transaction_conflicts_total = Counter(
    'portal_transaction_conflicts_total',
    'Optimistic concurrency conflicts that triggered a retry',
    ['operation']
)

transaction_duration_seconds = Histogram(
    'portal_transaction_duration_seconds',
    'Time spent running a transaction including retries',
    ['operation'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Storage metrics
storage_operations_total = Counter(
    'portal_storage_operations_total',
    'Object storage operations',
    ['operation', 'status']
)


def record_transaction(operation: str, outcome: str, duration: float) -> None:
    """Record the final outcome of a transaction run"""
    transactions_total.labels(operation=operation, outcome=outcome).inc()
    transaction_duration_seconds.labels(operation=operation).observe(duration)


def record_conflict(operation: str) -> None:
    """Record an optimistic concurrency conflict"""
    transaction_conflicts_total.labels(operation=operation).inc()


def record_storage(operation: str, status: str) -> None:
    """Record an object storage call"""
    storage_operations_total.labels(operation=operation, status=status).inc()
