"""Data models for the orchestration pipeline."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from cascade.agents.catalog import AgentDomain
from cascade.agents.protocol import FailureKind
from cascade.orchestration.collaborators import GateResult
from cascade.selection.analyzer import TaskComplexity
from cascade.trust.models import TrustLevel


class ExecutionPhase(str, Enum):
    """States of the orchestrator. INIT is the entry; REPORT and ERROR are terminal."""

    INIT = "init"
    EXPLAIN = "explain"
    SNAPSHOT = "snapshot"
    EXECUTE = "execute"
    VALIDATE = "validate"
    ROLLBACK = "rollback"
    REPORT = "report"
    ERROR = "error"


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass
class OrchestratorTask:
    """A unit of work submitted to the orchestrator"""
    description: str
    task_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    force_agents: list[str] = field(default_factory=list)
    skip_agents: list[str] = field(default_factory=list)
    affected_files: list[str] = field(default_factory=list)
    require_approval: bool | None = None  # None defers to config
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentExecutionResult:
    """Outcome of one agent's step"""
    agent_id: str
    domain: AgentDomain
    trust_level: TrustLevel
    success: bool
    quality_score: float  # 0-100
    duration_ms: int
    modified_files: list[str] = field(default_factory=list)
    error: str | None = None
    failure_kind: FailureKind | None = None
    is_critical_failure: bool = False
    is_security_issue: bool = False
    context_for_next: str | None = None

    def to_dict(self) -> dict:
        return {
            "agent_id": self.agent_id,
            "domain": self.domain.value,
            "trust_level": self.trust_level.name,
            "success": self.success,
            "quality_score": self.quality_score,
            "duration_ms": self.duration_ms,
            "modified_files": list(self.modified_files),
            "error": self.error,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "is_critical_failure": self.is_critical_failure,
            "is_security_issue": self.is_security_issue,
        }


@dataclass
class TaskExecutionResult:
    """Accumulates everything that happened to one task across phases"""
    task_id: str
    task_description: str
    complexity: TaskComplexity | None = None
    agent_results: list[AgentExecutionResult] = field(default_factory=list)
    trust_levels: dict[str, TrustLevel] = field(default_factory=dict)
    execution_order: list[str] = field(default_factory=list)
    skipped_agents: list[str] = field(default_factory=list)
    snapshot_id: str | None = None
    rolled_back: bool = False
    rollback_reason: str | None = None
    final_phase: ExecutionPhase = ExecutionPhase.INIT
    phase_history: list[ExecutionPhase] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    all_modified_files: list[str] = field(default_factory=list)
    pre_gate_results: list[GateResult] = field(default_factory=list)
    post_gate_results: list[GateResult] = field(default_factory=list)
    success: bool = False
    average_quality: float = 0.0
    total_duration_ms: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def min_trust_level(self) -> TrustLevel | None:
        return min(self.trust_levels.values()) if self.trust_levels else None

    def to_dict(self) -> dict:
        """Convert to dict for JSON output"""
        return {
            "task_id": self.task_id,
            "task_description": self.task_description,
            "complexity": self.complexity.value if self.complexity else None,
            "success": self.success,
            "final_phase": self.final_phase.value,
            "phase_history": [p.value for p in self.phase_history],
            "execution_order": list(self.execution_order),
            "skipped_agents": list(self.skipped_agents),
            "trust_levels": {k: v.name for k, v in self.trust_levels.items()},
            "agent_results": [r.to_dict() for r in self.agent_results],
            "snapshot_id": self.snapshot_id,
            "rolled_back": self.rolled_back,
            "rollback_reason": self.rollback_reason,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "all_modified_files": list(self.all_modified_files),
            "average_quality": self.average_quality,
            "total_duration_ms": self.total_duration_ms,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
