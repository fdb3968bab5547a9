"""Agent backend that drives an external coding-agent CLI."""

import asyncio
import json
import logging
import shutil
from typing import Any

from cascade.agents.catalog import AgentDescriptor
from cascade.agents.protocol import (
    AgentBackend,
    AgentFailure,
    AgentOutcome,
    AgentSuccess,
    FailureKind,
    PromptContext,
)
from cascade.config.schema import BackendSettings

logger = logging.getLogger(__name__)

# Hand-off text is truncated to this many characters when the agent
# does not provide its own context_for_next
MAX_HANDOFF_CHARS = 2000


class CliAgentBackend(AgentBackend):
    """Runs each agent step as one non-interactive CLI invocation.

    The CLI (Claude Code by default) is called with the rendered prompt as
    its final argument. The agent is asked to end its answer with a JSON
    report line, which supplies quality score, modified files and the
    hand-off for the next agent.
    """

    def __init__(self, settings: BackendSettings | None = None, working_dir: str = "."):
        self.settings = settings or BackendSettings()
        self.working_dir = working_dir
        self._executable_cache: str | None = None

    @property
    def executable(self) -> str:
        """Get the executable path, caching the result."""
        if self._executable_cache is None:
            self._executable_cache = shutil.which(self.settings.command) or self.settings.command
        return self._executable_cache

    def is_available(self) -> bool:
        """Check if the CLI is available on the system."""
        return shutil.which(self.settings.command) is not None

    def build_command(self, agent: AgentDescriptor, context: PromptContext) -> list[str]:
        cmd = [self.executable, *self.settings.args]
        if self.settings.model:
            cmd.extend(["--model", self.settings.model])
        cmd.append(context.render(agent))
        return cmd

    async def execute(
        self,
        agent: AgentDescriptor,
        context: PromptContext,
        abort_signal: asyncio.Event | None = None,
    ) -> AgentOutcome:
        if abort_signal is not None and abort_signal.is_set():
            return AgentFailure(kind=FailureKind.ABORTED, message="Aborted before start")

        cmd = self.build_command(agent, context)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.working_dir,
            )
        except FileNotFoundError:
            return AgentFailure(
                kind=FailureKind.BACKEND_ERROR,
                message=f"CLI '{self.settings.command}' not found. Is it installed?",
            )

        communicate = asyncio.ensure_future(proc.communicate())
        waiters: set[asyncio.Future] = {communicate}
        abort_waiter = None
        if abort_signal is not None:
            abort_waiter = asyncio.ensure_future(abort_signal.wait())
            waiters.add(abort_waiter)

        done, _ = await asyncio.wait(
            waiters,
            timeout=self.settings.timeout_seconds,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if abort_waiter is not None and abort_waiter not in done:
            abort_waiter.cancel()

        if communicate not in done:
            proc.kill()
            await communicate
            if abort_waiter is not None and abort_waiter in done:
                logger.info("Agent %s aborted", agent.id)
                return AgentFailure(kind=FailureKind.ABORTED, message="Aborted by caller")
            return AgentFailure(
                kind=FailureKind.TIMEOUT,
                message=f"Agent timed out after {self.settings.timeout_seconds}s",
            )

        stdout_bytes, stderr_bytes = communicate.result()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return self.parse_output(stdout, stderr, proc.returncode or 0)

    def parse_output(self, stdout: str, stderr: str, return_code: int) -> AgentOutcome:
        if return_code != 0:
            return AgentFailure(
                kind=FailureKind.BACKEND_ERROR,
                message=stderr.strip() or f"Command failed with code {return_code}",
                quality_score=self.settings.failure_quality,
                output=stdout,
            )

        content = stdout
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError:
            data = None

        if isinstance(data, dict):
            if data.get("is_error"):
                return AgentFailure(
                    kind=FailureKind.BACKEND_ERROR,
                    message=str(data.get("result") or data.get("error") or "Agent CLI reported an error"),
                    quality_score=self.settings.failure_quality,
                    output=stdout,
                )
            content = str(
                data.get("result")
                or data.get("response")
                or data.get("content")
                or data.get("text")
                or stdout
            )

        report = self._extract_report(content)
        success = bool(report.get("success", True))
        default_quality = self.settings.success_quality if success else self.settings.failure_quality
        quality = _as_float(report.get("quality_score"), default_quality)
        files = tuple(str(path) for path in report.get("modified_files") or [])

        if success:
            handoff = report.get("context_for_next") or content.strip()[-MAX_HANDOFF_CHARS:] or None
            return AgentSuccess(
                quality_score=quality,
                modified_files=files,
                context_for_next=handoff,
                output=content,
            )
        return AgentFailure(
            kind=FailureKind.TASK_FAILED,
            message=str(report.get("error") or "Agent reported failure"),
            quality_score=quality,
            modified_files=files,
            is_critical_failure=bool(report.get("critical")),
            is_security_issue=bool(report.get("security_issue")),
            output=content,
        )

    def _extract_report(self, content: str) -> dict[str, Any]:
        """Find the JSON report on the last line that parses as an object."""
        for line in reversed(content.strip().splitlines()):
            line = line.strip().strip("`")
            if not line.startswith("{"):
                continue
            try:
                report = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(report, dict):
                return report
        return {}


def _as_float(value: Any, default: float) -> float:
    try:
        return min(100.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return default
