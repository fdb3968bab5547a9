"""Agent execution backend protocol - how the orchestrator runs one agent."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cascade.agents.catalog import AgentDescriptor
from cascade.trust.models import PrivilegeSet, TrustLevel


class FailureKind(Enum):
    """Why an agent execution failed."""

    TASK_FAILED = "task_failed"  # Agent ran but reported failure
    BACKEND_ERROR = "backend_error"  # CLI missing, bad exit code, unparseable output
    EXCEPTION = "exception"  # Backend raised
    ABORTED = "aborted"  # Abort signal was set
    TIMEOUT = "timeout"


@dataclass
class PromptContext:
    """Everything an agent needs to know about its step in the pipeline."""

    task_id: str
    task_description: str
    agent_id: str
    step: int  # 1-based position in the execution order
    total_steps: int
    trust_level: TrustLevel
    privileges: PrivilegeSet
    previous_context: str | None = None
    modified_files: list[str] = field(default_factory=list)
    affected_files: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def render(self, agent: AgentDescriptor) -> str:
        """Render the context as a prompt for a text-based agent CLI."""
        lines = [
            f"You are the {agent.name} ({agent.domain.value} specialist), "
            f"step {self.step} of {self.total_steps}.",
            "",
            "## Task",
            self.task_description,
            "",
            "## Constraints",
            f"- Trust level: {self.trust_level.name}",
            f"- Allowed operations: {', '.join(sorted(self.privileges.allowed_operations))}",
            f"- Modify at most {min(agent.max_files_per_task, self.privileges.max_files_per_operation)} files",
        ]
        if self.affected_files:
            lines += ["", "## Files in scope", *(f"- {path}" for path in self.affected_files)]
        if self.modified_files:
            lines += ["", "## Already modified by earlier agents", *(f"- {path}" for path in self.modified_files)]
        if self.previous_context:
            lines += ["", "## Notes from the previous agent", self.previous_context]
        lines += [
            "",
            "Finish with a JSON object on the last line: "
            '{"success": bool, "quality_score": 0-100, "modified_files": [...], '
            '"context_for_next": "..."}',
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class AgentSuccess:
    """Agent finished its step."""

    quality_score: float
    modified_files: tuple[str, ...] = ()
    context_for_next: str | None = None
    output: str = ""

    success = True


@dataclass(frozen=True)
class AgentFailure:
    """Agent could not finish its step."""

    kind: FailureKind
    message: str
    quality_score: float = 0.0
    modified_files: tuple[str, ...] = ()
    is_critical_failure: bool = False
    is_security_issue: bool = False
    output: str = ""

    success = False


AgentOutcome = AgentSuccess | AgentFailure


class AgentBackend(ABC):
    """Runs a single agent step. Implement this to plug in an LLM runtime."""

    @abstractmethod
    async def execute(
        self,
        agent: AgentDescriptor,
        context: PromptContext,
        abort_signal: asyncio.Event | None = None,
    ) -> AgentOutcome:
        """Execute one agent step.

        Args:
            agent: Catalog descriptor of the agent to run.
            context: Task, trust and hand-off context for this step.
            abort_signal: Set by the caller to request cancellation.

        Returns:
            AgentSuccess or AgentFailure.
        """
        ...
