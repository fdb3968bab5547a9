"""Tests for trust levels, privileges and metrics serialization"""
from datetime import datetime

import pytest

from cascade.agents.catalog import AgentDomain
from cascade.trust.models import (
    ExecutionRecord,
    ManualOverride,
    TrustLevel,
    TrustMetrics,
    initial_level_for,
    privileges_for,
)


def test_trust_levels_are_totally_ordered():
    levels = list(TrustLevel)
    assert levels == sorted(levels)
    assert TrustLevel.L0_QUARANTINE < TrustLevel.L1_SUPERVISED < TrustLevel.L4_AUTONOMOUS
    assert min(TrustLevel.L3_TRUSTED, TrustLevel.L1_SUPERVISED) == TrustLevel.L1_SUPERVISED


@pytest.mark.parametrize(
    "value,expected",
    [
        (2, TrustLevel.L2_GUIDED),
        ("3", TrustLevel.L3_TRUSTED),
        ("L1", TrustLevel.L1_SUPERVISED),
        ("l4_autonomous", TrustLevel.L4_AUTONOMOUS),
        ("quarantine", TrustLevel.L0_QUARANTINE),
        (TrustLevel.L2_GUIDED, TrustLevel.L2_GUIDED),
    ],
)
def test_parse_trust_level(value, expected):
    assert TrustLevel.parse(value) == expected


def test_parse_rejects_unknown_level():
    with pytest.raises(ValueError):
        TrustLevel.parse("superuser")


def test_initial_levels_by_domain():
    assert initial_level_for(AgentDomain.SECURITY) == TrustLevel.L1_SUPERVISED
    assert initial_level_for(AgentDomain.TESTING) == TrustLevel.L3_TRUSTED
    for domain in (AgentDomain.FRONTEND, AgentDomain.DEVOPS, AgentDomain.GENERAL):
        assert initial_level_for(domain) == TrustLevel.L2_GUIDED


def test_privileges_relax_monotonically():
    """Each level allows at least what the level below allows"""
    levels = list(TrustLevel)
    for lower, higher in zip(levels, levels[1:]):
        low, high = privileges_for(lower), privileges_for(higher)
        assert low.allowed_operations <= high.allowed_operations
        assert low.max_files_per_operation <= high.max_files_per_operation
        assert low.max_retries <= high.max_retries
        assert low.max_parallel_agents <= high.max_parallel_agents
        assert high.skip_explain_first or not low.skip_explain_first
        assert high.auto_approve_changes or not low.auto_approve_changes


def test_quarantine_privileges_are_read_only():
    privileges = privileges_for(TrustLevel.L0_QUARANTINE)
    assert privileges.allows("read")
    assert not privileges.allows("write")
    assert privileges.max_parallel_agents == 0


def test_autonomous_privileges():
    privileges = privileges_for(TrustLevel.L4_AUTONOMOUS)
    assert privileges.allows("delete")
    assert privileges.auto_approve_changes
    assert privileges.supervision_mode.value == "sampling"


def test_metrics_survive_serialization():
    now = datetime(2026, 1, 2, 3, 4, 5)
    metrics = TrustMetrics(
        agent_id="backend-developer",
        total_executions=3,
        successful_executions=2,
        failed_executions=1,
        consecutive_failures=1,
        rolling_quality_score=71.5,
        last_security_issue_at=now,
        manual_override=ManualOverride(TrustLevel.L3_TRUSTED, "pairing", now),
        recent_results=[True, True, False],
        execution_history=[ExecutionRecord(timestamp=now, success=False, quality_score=30.0, error="x")],
    )

    restored = TrustMetrics.from_dict(metrics.to_dict())

    assert restored.agent_id == "backend-developer"
    assert restored.last_security_issue_at == now
    assert restored.last_critical_failure_at is None
    assert restored.manual_override.level == TrustLevel.L3_TRUSTED
    assert restored.recent_results == [True, True, False]
    assert restored.execution_history[0].error == "x"
    assert restored.success_rate == pytest.approx(2 / 3)
    assert restored.recent_failures == 1


def test_sticky_quarantine_tracks_critical_and_security_timestamps():
    metrics = TrustMetrics(agent_id="backend-developer")
    assert not metrics.has_sticky_quarantine

    metrics.last_security_issue_at = datetime(2025, 1, 1)
    assert metrics.has_sticky_quarantine

    metrics.last_security_issue_at = None
    metrics.consecutive_failures = 5
    assert not metrics.has_sticky_quarantine
