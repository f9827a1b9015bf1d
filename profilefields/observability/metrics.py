"""Prometheus metrics for the attribute-schema engine."""

from prometheus_client import Counter, Gauge, Histogram

# Definition lifecycle
DEFINITION_MUTATIONS = Counter(
    "profilefields_definition_mutations_total",
    "Definition mutations by operation and outcome",
    labelnames=["operation", "outcome"],
)

VALIDATION_FAILURES = Counter(
    "profilefields_validation_failures_total",
    "Validation passes that produced at least one error",
    labelnames=["surface"],
)

# Cache
CACHE_HITS = Counter(
    "profilefields_cache_hits_total",
    "Cache hits by key kind",
    labelnames=["key_kind"],
)

CACHE_MISSES = Counter(
    "profilefields_cache_misses_total",
    "Cache misses by key kind",
    labelnames=["key_kind"],
)

CACHE_ERRORS = Counter(
    "profilefields_cache_errors_total",
    "Cache backend failures",
    labelnames=["operation"],
)

# Import/export
IMPORT_ENTRIES = Counter(
    "profilefields_import_entries_total",
    "Imported definition entries by outcome",
    labelnames=["outcome", "dry_run"],
)

EXPORTED_DEFINITIONS = Counter(
    "profilefields_exported_definitions_total",
    "Definitions written to export documents",
)

# Storage
STORE_LATENCY = Histogram(
    "profilefields_store_operation_seconds",
    "Latency of storage operations",
    labelnames=["backend", "operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

PENDING_PURGES = Gauge(
    "profilefields_pending_purges",
    "Deprecated definitions waiting for purge",
)
