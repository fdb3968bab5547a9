"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from cascade.trust.models import TrustLevel

# Never snapshotted: dependencies, VCS data, build output and env secrets
DEFAULT_EXCLUDE_PATTERNS = [
    "node_modules/**",
    ".git/**",
    "*.lock",
    "package-lock.json",
    ".env*",
    "dist/**",
    "build/**",
    ".next/**",
]
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


class OrchestratorSettings(BaseModel):
    """Pipeline behaviour for a single task."""

    max_agents_per_task: int = Field(default=5, ge=1)
    strict_quality_gates: bool = False  # Post-gate failure fails the task
    auto_rollback_on_failure: bool = True
    snapshot_trust_threshold: TrustLevel = TrustLevel.L2_GUIDED  # Snapshot at or below this
    enable_trust_cascade: bool = True
    enable_multi_agent: bool = True
    enable_snapshots: bool = True
    enable_quality_gates: bool = True
    require_approval: bool = True
    verbose: bool = False
    execution_mode: Literal["sequential", "parallel"] = "sequential"

    @field_validator("snapshot_trust_threshold", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> TrustLevel:
        return TrustLevel.parse(value)


class TrustSettings(BaseModel):
    """Where and how much trust history is kept."""

    store_dir: str = ".cascade"  # Relative to the project directory
    max_history: int = Field(default=100, ge=1)


class SnapshotSettings(BaseModel):
    """File snapshot storage."""

    directory: str = ".cascade/snapshots"  # Relative to the project directory
    keep: int = Field(default=20, ge=1)  # Oldest snapshots beyond this are pruned
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, gt=0)  # Bytes; larger files are skipped


class GateSpec(BaseModel):
    """A shell-free command run as a quality gate."""

    name: str
    command: str
    timing: Literal["pre", "post"] = "post"
    domains: list[str] = Field(default_factory=list)  # Empty means every domain
    blocking: bool = True
    timeout_seconds: float = Field(default=300.0, gt=0)


class GateSettings(BaseModel):
    """Quality gate commands."""

    checks: list[GateSpec] = Field(default_factory=list)


class BackendSettings(BaseModel):
    """External coding-agent CLI used to run agent steps."""

    command: str = "claude"
    args: list[str] = Field(default_factory=lambda: ["--print", "--output-format", "json"])
    model: str | None = None
    timeout_seconds: float | None = None
    success_quality: float = Field(default=80.0, ge=0, le=100)  # When the agent reports none
    failure_quality: float = Field(default=30.0, ge=0, le=100)


class CascadeConfig(BaseModel):
    """Root configuration model for cascade."""

    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    trust: TrustSettings = Field(default_factory=TrustSettings)
    snapshots: SnapshotSettings = Field(default_factory=SnapshotSettings)
    gates: GateSettings = Field(default_factory=GateSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)

    @classmethod
    def default(cls) -> "CascadeConfig":
        """Create default configuration."""
        return cls()


def get_config_dir() -> Path:
    """Get the user configuration directory path."""
    return Path.home() / ".config" / "cascade"


def get_config_file() -> Path:
    """Get the user configuration file path."""
    return get_config_dir() / "config.toml"
