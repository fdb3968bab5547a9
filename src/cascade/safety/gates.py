"""Quality gates backed by configured shell-free commands."""

import asyncio
import logging
import shlex

from cascade.agents.catalog import AgentDomain
from cascade.config.schema import GateSpec
from cascade.errors import GateError
from cascade.orchestration.collaborators import GateCheck, GateContext, GateResult, QualityGateRunner

logger = logging.getLogger(__name__)

MAX_ISSUE_LINES = 20


class CommandGateRunner(QualityGateRunner):
    """Runs each configured gate command and treats a non-zero exit as failure.

    Commands may use {files} (space-joined, shell-quoted) and {task_id}.
    A gate with no domains applies to every domain.
    """

    def __init__(self, specs: list[GateSpec], working_dir: str = "."):
        self.specs = list(specs)
        self.working_dir = working_dir

    async def run_pre_gates(self, context: GateContext, domain: AgentDomain) -> GateResult:
        return await self._run("pre", context, domain)

    async def run_post_gates(self, context: GateContext, domain: AgentDomain) -> GateResult:
        return await self._run("post", context, domain)

    def gates_for(self, timing: str, domain: AgentDomain) -> list[GateSpec]:
        return [
            spec
            for spec in self.specs
            if spec.timing == timing and (not spec.domains or domain.value in spec.domains)
        ]

    async def _run(self, timing: str, context: GateContext, domain: AgentDomain) -> GateResult:
        checks = []
        for spec in self.gates_for(timing, domain):
            checks.append(await self._run_gate(spec, context))
        return GateResult.from_checks(checks, domain=domain)

    async def _run_gate(self, spec: GateSpec, context: GateContext) -> GateCheck:
        gate_id = f"{spec.timing}:{spec.name}"
        cmd = self.build_command(spec, context)
        if not cmd:
            return GateCheck(gate_id, spec.name, passed=False, blocking=spec.blocking,
                             message="Empty gate command")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=context.working_dir or self.working_dir,
            )
        except FileNotFoundError:
            return GateCheck(gate_id, spec.name, passed=False, blocking=spec.blocking,
                             message=f"Command not found: {cmd[0]}")

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=spec.timeout_seconds)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return GateCheck(gate_id, spec.name, passed=False, blocking=spec.blocking,
                             message=f"{spec.name} timed out after {spec.timeout_seconds}s")

        output = stdout.decode("utf-8", errors="replace")
        passed = proc.returncode == 0
        issues = [] if passed else [
            f"{spec.name}: {line}" for line in output.splitlines() if line.strip()
        ][:MAX_ISSUE_LINES]
        message = f"{spec.name} passed" if passed else f"{spec.name} failed (exit {proc.returncode})"
        logger.debug("Gate %s: %s", gate_id, message)
        return GateCheck(gate_id, spec.name, passed=passed, blocking=spec.blocking,
                         message=message, issues=issues)

    def build_command(self, spec: GateSpec, context: GateContext) -> list[str]:
        """Split a gate command and expand placeholders.

        Raises GateError if the command has unbalanced quotes.
        """
        files = " ".join(shlex.quote(path) for path in context.files)
        command = spec.command.replace("{task_id}", shlex.quote(context.task_id))
        command = command.replace("{files}", files)
        try:
            return shlex.split(command)
        except ValueError as e:
            raise GateError(f"Cannot parse command for gate {spec.name}: {e}") from e
