"""Tests for configuration schema."""
import pytest
from pydantic import ValidationError

from cascade.config.schema import CascadeConfig, GateSpec, OrchestratorSettings, get_config_file
from cascade.trust.models import TrustLevel


def test_orchestrator_defaults():
    """Test OrchestratorSettings has correct defaults."""
    settings = OrchestratorSettings()

    assert settings.max_agents_per_task == 5
    assert settings.strict_quality_gates is False
    assert settings.auto_rollback_on_failure is True
    assert settings.snapshot_trust_threshold == TrustLevel.L2_GUIDED
    assert settings.enable_trust_cascade is True
    assert settings.require_approval is True
    assert settings.execution_mode == "sequential"


@pytest.mark.parametrize("value", ["L3", "trusted", 3, "3"])
def test_snapshot_threshold_accepts_level_names(value):
    settings = OrchestratorSettings(snapshot_trust_threshold=value)
    assert settings.snapshot_trust_threshold == TrustLevel.L3_TRUSTED


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        OrchestratorSettings(max_agents_per_task=0)
    with pytest.raises(ValidationError):
        OrchestratorSettings(execution_mode="swarm")
    with pytest.raises(ValidationError):
        OrchestratorSettings(snapshot_trust_threshold="L7")


def test_gate_spec_defaults():
    spec = GateSpec(name="tests", command="pytest -q")

    assert spec.timing == "post"
    assert spec.domains == []
    assert spec.blocking is True


def test_cascade_config_default_sections():
    config = CascadeConfig.default()

    assert config.trust.store_dir == ".cascade"
    assert config.snapshots.keep == 20
    assert config.gates.checks == []
    assert config.backend.command == "claude"
    assert "--print" in config.backend.args


def test_user_config_file_location(isolated_home):
    assert get_config_file() == isolated_home / ".config" / "cascade" / "config.toml"
