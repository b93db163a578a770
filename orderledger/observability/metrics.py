"""Prometheus metrics for orderledger.

Version write outcomes, index consistency and purge run results.
"""

from prometheus_client import Counter, Histogram

VERSIONS_CREATED = Counter(
    "orderledger_versions_created_total",
    "Total number of versions appended to the version store",
    labelnames=["status", "operation"],
)

VERSION_CONFLICTS = Counter(
    "orderledger_version_conflicts_total",
    "Version number races detected on append",
    labelnames=["operation", "outcome"],
)

INDEX_WRITE_FAILURES = Counter(
    "orderledger_index_write_failures_total",
    "Index writes that failed after a successful store append",
)

INDEX_REPAIRS = Counter(
    "orderledger_index_repairs_total",
    "Index entries added or removed by reconciliation",
    labelnames=["action"],
)

PURGE_RUNS = Counter(
    "orderledger_purge_runs_total",
    "Purge runs by final status",
    labelnames=["status", "trigger"],
)

PURGE_VERSIONS_DELETED = Counter(
    "orderledger_purge_versions_deleted_total",
    "Draft versions reclaimed by the purge engine",
)

PURGE_DURATION = Histogram(
    "orderledger_purge_duration_seconds",
    "Wall time of a purge run",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)
