"""
Prometheus metrics for the operator process.
"""
from prometheus_client import Counter, Gauge, Histogram

reconcile_total = Counter(
    "ingress_operator_reconcile_total",
    "Reconcile passes by outcome",
    ["result"],
)
reconcile_duration_seconds = Histogram(
    "ingress_operator_reconcile_duration_seconds",
    "Wall time of one reconcile pass",
)
admissions_total = Counter(
    "ingress_operator_admissions_total",
    "Admission decisions",
    ["result"],
)
queue_depth = Gauge(
    "ingress_operator_queue_depth",
    "Requests waiting in the reconcile queue",
)
