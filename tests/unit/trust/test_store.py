"""Tests for TrustStore persistence"""
import json

import pytest

from cascade.errors import TrustStoreError
from cascade.trust.engine import TrustCascadeEngine
from cascade.trust.models import ExecutionOutcome, TrustLevel
from cascade.trust.store import STORE_VERSION, TrustStore


def test_store_path_is_project_scoped(tmp_path):
    store = TrustStore.for_project(tmp_path)
    assert store.path == tmp_path / ".cascade" / "trust-scores.json"


def test_missing_file_loads_empty(tmp_path):
    assert TrustStore.for_project(tmp_path).load() == {}


def test_engine_persists_and_reloads(tmp_path, catalog):
    store = TrustStore.for_project(tmp_path)
    engine = TrustCascadeEngine(store=store, catalog=catalog)
    engine.record_execution("backend-developer", ExecutionOutcome(success=False, quality_score=10, is_critical_failure=True))
    engine.set_trust_level("frontend-developer", TrustLevel.L3_TRUSTED, "reviewed")

    fresh = TrustCascadeEngine(store=TrustStore.for_project(tmp_path), catalog=catalog)

    assert fresh.calculate_trust_level("backend-developer") == TrustLevel.L0_QUARANTINE
    assert fresh.calculate_trust_level("frontend-developer") == TrustLevel.L3_TRUSTED
    assert fresh.get_metrics("backend-developer").total_executions == 1


def test_file_layout(tmp_path, catalog):
    engine = TrustCascadeEngine(store=TrustStore.for_project(tmp_path), catalog=catalog)
    engine.record_execution("backend-developer", ExecutionOutcome(success=True, quality_score=90))

    data = json.loads((tmp_path / ".cascade" / "trust-scores.json").read_text())
    assert data["version"] == STORE_VERSION
    assert "last_updated" in data
    record = data["agents"]["backend-developer"]
    assert record["total_executions"] == 1
    assert record["rolling_quality_score"] == 90.0
    assert "trust_level" not in record


def test_execution_history_is_capped(tmp_path, catalog):
    engine = TrustCascadeEngine(store=TrustStore.for_project(tmp_path), catalog=catalog, max_history=3)
    for _ in range(5):
        engine.record_execution("backend-developer", ExecutionOutcome(success=True, quality_score=90))

    metrics = TrustCascadeEngine(store=TrustStore.for_project(tmp_path), catalog=catalog).get_metrics("backend-developer")
    assert len(metrics.execution_history) == 3
    assert metrics.total_executions == 5


def test_corrupt_store_raises(tmp_path):
    path = tmp_path / ".cascade" / "trust-scores.json"
    path.parent.mkdir()
    path.write_text("{not json")

    with pytest.raises(TrustStoreError):
        TrustStore.for_project(tmp_path).load()


def test_malformed_store_raises(tmp_path):
    path = tmp_path / ".cascade" / "trust-scores.json"
    path.parent.mkdir()
    path.write_text(json.dumps({"version": STORE_VERSION, "agents": []}))

    with pytest.raises(TrustStoreError):
        TrustStore.for_project(tmp_path).load()


def test_in_memory_store_writes_nothing(tmp_path, catalog):
    engine = TrustCascadeEngine(store=TrustStore.in_memory(), catalog=catalog)
    engine.record_execution("backend-developer", ExecutionOutcome(success=True, quality_score=90))

    assert list(tmp_path.iterdir()) == []


def test_concurrent_writers_can_lose_updates(tmp_path, catalog):
    """Known limitation: the store is not transactional across processes.

    Two engines that loaded the same file before either wrote will
    overwrite each other; the last writer wins.
    """
    first = TrustCascadeEngine(store=TrustStore.for_project(tmp_path), catalog=catalog)
    second = TrustCascadeEngine(store=TrustStore.for_project(tmp_path), catalog=catalog)
    first.calculate_trust_level("backend-developer")
    second.calculate_trust_level("frontend-developer")

    first.record_execution("backend-developer", ExecutionOutcome(success=True, quality_score=90))
    second.record_execution("frontend-developer", ExecutionOutcome(success=True, quality_score=90))

    reader = TrustCascadeEngine(store=TrustStore.for_project(tmp_path), catalog=catalog)
    assert reader.get_metrics("frontend-developer") is not None
    assert reader.get_metrics("backend-developer") is None
