"""Execution ordering and the cascade orchestrator."""

from cascade.orchestration.collaborators import (
    GateCheck,
    GateContext,
    GateResult,
    QualityGateRunner,
    SnapshotService,
)
from cascade.orchestration.models import (
    AgentExecutionResult,
    ExecutionPhase,
    OrchestratorTask,
    TaskExecutionResult,
)
from cascade.orchestration.orchestrator import CascadeOrchestrator
from cascade.orchestration.ordering import ExecutionOrderAnalyzer, ParallelGroup

__all__ = [
    "AgentExecutionResult",
    "CascadeOrchestrator",
    "ExecutionOrderAnalyzer",
    "ExecutionPhase",
    "GateCheck",
    "GateContext",
    "GateResult",
    "OrchestratorTask",
    "ParallelGroup",
    "QualityGateRunner",
    "SnapshotService",
    "TaskExecutionResult",
]
