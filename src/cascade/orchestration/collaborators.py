"""Interfaces the orchestrator depends on but does not implement."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from cascade.agents.catalog import AgentDescriptor, AgentDomain


@dataclass
class GateCheck:
    """Outcome of a single quality gate"""
    gate_id: str
    name: str
    passed: bool
    blocking: bool = True
    message: str = ""
    issues: list[str] = field(default_factory=list)


@dataclass
class GateResult:
    """Combined outcome of every gate run for one domain"""
    passed: bool
    blocking_issues: list[str] = field(default_factory=list)
    checks: list[GateCheck] = field(default_factory=list)
    domain: AgentDomain | None = None

    @classmethod
    def from_checks(cls, checks: list[GateCheck], domain: AgentDomain | None = None) -> "GateResult":
        """Passed unless a blocking gate failed; advisory failures are dropped."""
        blocking = [
            issue or check.message
            for check in checks
            if check.blocking and not check.passed
            for issue in (check.issues or [check.message])
        ]
        return cls(passed=not blocking, blocking_issues=blocking, checks=checks, domain=domain)


@dataclass
class GateContext:
    """What a gate runner gets to inspect"""
    task_id: str
    task_description: str
    working_dir: str
    files: list[str] = field(default_factory=list)
    agent_ids: list[str] = field(default_factory=list)


class SnapshotService(ABC):
    """Captures files before execution so they can be restored."""

    @abstractmethod
    async def create(self, files: list[str], label: str, metadata: dict[str, Any]) -> str:
        """Capture files and return a snapshot id."""
        ...

    @abstractmethod
    async def restore(self, snapshot_id: str) -> None:
        """Put every captured file back as it was."""
        ...


class QualityGateRunner(ABC):
    """Runs pre- and post-execution checks for a domain."""

    @abstractmethod
    async def run_pre_gates(self, context: GateContext, domain: AgentDomain) -> GateResult:
        ...

    @abstractmethod
    async def run_post_gates(self, context: GateContext, domain: AgentDomain) -> GateResult:
        ...


# (task, agents in execution order, plan details) -> approved?
ApprovalCallback = Callable[[Any, list[AgentDescriptor], dict[str, Any]], Awaitable[bool]]
# (phase, data) -> None, awaited before the pipeline continues
PhaseCallback = Callable[[Any, dict[str, Any]], Awaitable[None]]
