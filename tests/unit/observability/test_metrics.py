"""Tests for Prometheus metrics."""

import pytest
from prometheus_client import REGISTRY

from profilefields.errors import ValidationFailed
from profilefields.observability.metrics import (
    CACHE_HITS,
    DEFINITION_MUTATIONS,
    IMPORT_ENTRIES,
    PENDING_PURGES,
    STORE_LATENCY,
    VALIDATION_FAILURES,
)


def sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricDefinitions:
    """Collectors accept their label sets."""

    def test_counters_increment(self) -> None:
        DEFINITION_MUTATIONS.labels(operation="create", outcome="success").inc()
        CACHE_HITS.labels(key_kind="definition").inc()
        IMPORT_ENTRIES.labels(outcome="skipped", dry_run="true").inc()
        VALIDATION_FAILURES.labels(surface="value").inc()

    def test_histogram_observe(self) -> None:
        STORE_LATENCY.labels(backend="inmemory", operation="query_definitions").observe(0.002)

    def test_gauge(self) -> None:
        PENDING_PURGES.inc()
        PENDING_PURGES.dec()


class TestEngineMetrics:
    """Engine operations update their collectors."""

    async def test_create_counts_success(self, manager, admin) -> None:
        labels = {"operation": "create", "outcome": "success"}
        before = sample("profilefields_definition_mutations_total", labels)

        await manager.create({"name": "pet_name", "label": "Pet Name", "kind": "text"}, admin)

        assert sample("profilefields_definition_mutations_total", labels) == before + 1

    async def test_rejected_create_counts_error_code(self, manager, admin) -> None:
        labels = {"operation": "create", "outcome": "validation_failed"}
        before = sample("profilefields_definition_mutations_total", labels)

        with pytest.raises(ValidationFailed):
            await manager.create({"name": "1bad", "label": "Bad", "kind": "text"}, admin)

        assert sample("profilefields_definition_mutations_total", labels) == before + 1

    async def test_cache_hits_and_misses(self, manager, admin) -> None:
        definition_id = await manager.create({"name": "pet_name", "label": "Pet Name", "kind": "text"}, admin)
        hits = sample("profilefields_cache_hits_total", {"key_kind": "definition"})
        misses = sample("profilefields_cache_misses_total", {"key_kind": "definition"})

        await manager.get(definition_id)
        await manager.get(definition_id)

        assert sample("profilefields_cache_misses_total", {"key_kind": "definition"}) == misses + 1
        assert sample("profilefields_cache_hits_total", {"key_kind": "definition"}) == hits + 1
