"""Cascade orchestrator: the trust-gated, seven-phase task pipeline."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from cascade.agents.catalog import AgentCatalog, AgentDescriptor, AgentDomain, default_catalog
from cascade.agents.protocol import AgentBackend, AgentFailure, FailureKind, PromptContext
from cascade.config.schema import OrchestratorSettings
from cascade.orchestration.collaborators import (
    ApprovalCallback,
    GateContext,
    PhaseCallback,
    QualityGateRunner,
    SnapshotService,
)
from cascade.orchestration.models import (
    AgentExecutionResult,
    ExecutionMode,
    ExecutionPhase,
    OrchestratorTask,
    TaskExecutionResult,
)
from cascade.orchestration.ordering import ExecutionOrderAnalyzer
from cascade.selection.analyzer import TaskAnalyzer
from cascade.selection.selector import AgentSelectionResult, AgentSelector
from cascade.trust.engine import TrustCascadeEngine
from cascade.trust.models import ExecutionOutcome, TrustLevel, privileges_for

logger = logging.getLogger(__name__)


@dataclass
class _TaskRun:
    """Per-call state threaded through the phases"""
    task: OrchestratorTask
    result: TaskExecutionResult
    started: float
    abort_signal: asyncio.Event | None
    restore_attempted: bool = False


class CascadeOrchestrator:
    """Runs one task through INIT, EXPLAIN, SNAPSHOT, EXECUTE, VALIDATE,
    ROLLBACK and REPORT, with ERROR reachable from any phase.

    Every collaborator is passed in. Snapshot service, gate runner and
    callbacks are optional; phases that need a missing one are skipped.
    """

    def __init__(
        self,
        backend: AgentBackend,
        config: OrchestratorSettings | None = None,
        catalog: AgentCatalog | None = None,
        trust: TrustCascadeEngine | None = None,
        selector: AgentSelector | None = None,
        order_analyzer: ExecutionOrderAnalyzer | None = None,
        snapshots: SnapshotService | None = None,
        gates: QualityGateRunner | None = None,
        approval_callback: ApprovalCallback | None = None,
        phase_callback: PhaseCallback | None = None,
        working_dir: str = ".",
    ):
        self.backend = backend
        self.config = config or OrchestratorSettings()
        self.catalog = catalog or default_catalog()
        self.trust = trust or TrustCascadeEngine(catalog=self.catalog)
        analyzer = TaskAnalyzer()
        self.selector = selector or AgentSelector(
            self.catalog, analyzer, max_agents=self.config.max_agents_per_task
        )
        self.order_analyzer = order_analyzer or ExecutionOrderAnalyzer(analyzer)
        self.snapshots = snapshots
        self.gates = gates
        self.approval_callback = approval_callback
        self.phase_callback = phase_callback
        self.working_dir = working_dir

    async def execute_task(
        self,
        task: OrchestratorTask | str,
        abort_signal: asyncio.Event | None = None,
    ) -> TaskExecutionResult:
        """Run a task end to end and return its report.

        Admission, execution and validation failures are reported in the
        result rather than raised. Unexpected exceptions are caught here,
        trigger a best-effort restore, and end in the ERROR phase.
        """
        if isinstance(task, str):
            task = OrchestratorTask(description=task)

        run = _TaskRun(
            task=task,
            result=TaskExecutionResult(task_id=task.task_id, task_description=task.description),
            started=time.monotonic(),
            abort_signal=abort_signal,
        )
        result = run.result

        try:
            admitted = await self._initialize(run)
            if admitted is None:
                return await self._terminate_with_error(run)
            agents, selection = admitted
            min_level = result.min_trust_level

            if self._needs_approval(task, min_level):
                if not await self._explain(run, agents, selection):
                    return await self._terminate_with_error(run)

            if self._needs_snapshot(min_level):
                await self._snapshot(run, agents, min_level)

            if not await self._run_pre_gates(run, agents):
                return await self._terminate_with_error(run)

            await self._enter(run, ExecutionPhase.EXECUTE, {"order": list(result.execution_order)})
            if self.config.execution_mode == ExecutionMode.PARALLEL.value:
                await self._execute_parallel(run, agents)
            else:
                await self._execute_sequential(run, agents)

            await self._validate(run)

            if self._needs_rollback(result, min_level):
                reason = result.errors[0] if result.errors else "task failed"
                await self._enter(
                    run, ExecutionPhase.ROLLBACK, {"snapshot_id": result.snapshot_id, "reason": reason}
                )
                await self._restore(run, reason)
            elif not result.success and result.snapshot_id:
                result.warnings.append(
                    f"Task failed; snapshot {result.snapshot_id} kept for manual restore"
                )

            self._finalize(run)
            await self._enter(run, ExecutionPhase.REPORT, {"result": result})
            return result

        except Exception as e:
            logger.exception("Task %s failed with an unexpected error", task.task_id)
            result.errors.append(f"Unexpected error: {e}")
            if result.snapshot_id and not run.restore_attempted and self.snapshots is not None:
                await self._restore(run, f"error recovery: {e}")
            return await self._terminate_with_error(run)

    # -- phases ----------------------------------------------------------

    async def _initialize(
        self, run: _TaskRun
    ) -> tuple[list[AgentDescriptor], AgentSelectionResult] | None:
        task, result = run.task, run.result
        await self._enter(run, ExecutionPhase.INIT, {"task_id": task.task_id, "description": task.description})

        max_agents = self.config.max_agents_per_task if self.config.enable_multi_agent else 1
        selection = self.selector.select_agents(
            task.description,
            force_agents=task.force_agents,
            skip_agents=task.skip_agents,
            max_agents=max_agents,
        )
        result.complexity = selection.complexity
        for agent_id in selection.unknown_forced:
            result.warnings.append(f"Unknown agent ignored: {agent_id}")

        agents = list(selection.selected_agents)
        if not self.config.enable_multi_agent:
            agents = agents[:1]
        if not agents:
            fallback = self.catalog.general_agent()
            if fallback is None or fallback.id in task.skip_agents:
                result.errors.append("No agents selected for task")
                return None
            result.warnings.append(f"No specialist matched the task; falling back to {fallback.id}")
            agents = [fallback]

        ordered = self.order_analyzer.determine_execution_order(agents, task.description)
        result.execution_order = [agent.id for agent in ordered]
        for agent in ordered:
            result.trust_levels[agent.id] = self._trust_level(agent.id)

        quarantined = [
            agent.id for agent in ordered
            if result.trust_levels[agent.id] == TrustLevel.L0_QUARANTINE
        ]
        if quarantined:
            details = [
                f"{agent_id} ({self.trust.get_quarantine_reason(agent_id) or 'quarantined'})"
                for agent_id in quarantined
            ]
            result.errors.append(f"Quarantined agents detected: {', '.join(details)}")
            logger.warning("Task %s blocked by quarantined agents: %s", task.task_id, quarantined)
            return None

        logger.info(
            "Task %s: %s agents in order %s",
            task.task_id, len(ordered), ", ".join(result.execution_order),
        )
        return ordered, selection

    async def _explain(
        self, run: _TaskRun, agents: list[AgentDescriptor], selection: AgentSelectionResult
    ) -> bool:
        task, result = run.task, run.result
        plan = self._build_plan(run, agents, selection)
        await self._enter(run, ExecutionPhase.EXPLAIN, plan)

        if self.approval_callback is None:
            result.warnings.append("No approval callback configured; execution auto-approved")
            return True

        approved = await self.approval_callback(task, agents, plan)
        if not approved:
            result.errors.append("Execution cancelled: approval denied")
            logger.info("Task %s rejected at approval", task.task_id)
            return False
        return True

    async def _snapshot(self, run: _TaskRun, agents: list[AgentDescriptor], min_level: TrustLevel) -> None:
        task, result = run.task, run.result
        files = list(task.affected_files)
        await self._enter(run, ExecutionPhase.SNAPSHOT, {"files": files})
        result.snapshot_id = await self.snapshots.create(
            files,
            f"Before task: {task.description[:50]}",
            {
                "task_id": task.task_id,
                "task_description": task.description,
                "agent_ids": [agent.id for agent in agents],
                "trust_level": min_level.name,
            },
        )
        logger.info("Snapshot %s created for task %s", result.snapshot_id, task.task_id)

    async def _run_pre_gates(self, run: _TaskRun, agents: list[AgentDescriptor]) -> bool:
        if not self.config.enable_quality_gates or self.gates is None:
            return True

        result = run.result
        context = self._gate_context(run, list(run.task.affected_files))
        for domain in _unique_domains(agents):
            gate = await self.gates.run_pre_gates(context, domain)
            result.pre_gate_results.append(gate)
            if not gate.passed:
                result.errors.append(
                    f"Pre-execution quality gate failed for {domain.value}: "
                    + ("; ".join(gate.blocking_issues) or "no details")
                )
                return False
        return True

    async def _execute_sequential(self, run: _TaskRun, agents: list[AgentDescriptor]) -> None:
        result = run.result
        previous_context: str | None = None

        for index, agent in enumerate(agents):
            agent_result = await self._run_agent(run, agent, index + 1, len(agents), previous_context)
            self._absorb(result, agent_result)

            if agent_result.success:
                if agent_result.context_for_next:
                    previous_context = agent_result.context_for_next
                continue

            result.errors.append(f"Agent {agent.id} failed: {agent_result.error}")
            if agent_result.trust_level <= TrustLevel.L1_SUPERVISED:
                self._stop_pipeline(result, agent_result, [a.id for a in agents[index + 1:]])
                break

    async def _execute_parallel(self, run: _TaskRun, agents: list[AgentDescriptor]) -> None:
        """Run each parallel group concurrently, groups one after another."""
        task, result = run.task, run.result
        groups = self.order_analyzer.get_parallel_groups(agents, task.description)
        steps = {agent.id: index + 1 for index, agent in enumerate(agents)}
        previous_context: str | None = None

        for group_index, group in enumerate(groups):
            limit = max(
                1,
                min(privileges_for(result.trust_levels[a.id]).max_parallel_agents for a in group.agents),
            )
            semaphore = asyncio.Semaphore(limit)

            async def run_one(agent: AgentDescriptor, context: str | None) -> AgentExecutionResult:
                async with semaphore:
                    return await self._run_agent(run, agent, steps[agent.id], len(agents), context)

            logger.debug("Running group %s (%s at a time): %s", group_index, limit, group.agent_ids)
            # Let the whole group settle before an error propagates to rollback
            settled = await asyncio.gather(
                *(run_one(agent, previous_context) for agent in group.agents),
                return_exceptions=True,
            )
            group_results = [r for r in settled if isinstance(r, AgentExecutionResult)]
            for agent_result in group_results:
                self._absorb(result, agent_result)
            for outcome in settled:
                if isinstance(outcome, BaseException):
                    raise outcome

            contexts: list[str] = []
            stopper: AgentExecutionResult | None = None
            for agent_result in group_results:
                if agent_result.success:
                    if agent_result.context_for_next:
                        contexts.append(agent_result.context_for_next)
                    continue
                result.errors.append(f"Agent {agent_result.agent_id} failed: {agent_result.error}")
                if stopper is None and agent_result.trust_level <= TrustLevel.L1_SUPERVISED:
                    stopper = agent_result

            if contexts:
                previous_context = "\n\n".join(contexts)
            if stopper is not None:
                remaining = [a.id for g in groups[group_index + 1:] for a in g.agents]
                self._stop_pipeline(result, stopper, remaining)
                break

    async def _validate(self, run: _TaskRun) -> None:
        result = run.result
        await self._enter(run, ExecutionPhase.VALIDATE, {"files": list(result.all_modified_files)})

        gates_ok = True
        if self.config.enable_quality_gates and self.gates is not None and result.agent_results:
            context = self._gate_context(run, list(result.all_modified_files))
            ran = [self.catalog.get(r.agent_id) for r in result.agent_results]
            for domain in _unique_domains([a for a in ran if a is not None]):
                gate = await self.gates.run_post_gates(context, domain)
                result.post_gate_results.append(gate)
                if gate.passed:
                    continue
                message = (
                    f"Post-execution quality gate failed for {domain.value}: "
                    + ("; ".join(gate.blocking_issues) or "no details")
                )
                if self.config.strict_quality_gates:
                    result.errors.append(message)
                    gates_ok = False
                else:
                    result.warnings.append(message)

        executed = result.agent_results
        result.success = (
            bool(executed)
            and all(r.success for r in executed)
            and not result.skipped_agents
            and gates_ok
        )

    async def _restore(self, run: _TaskRun, reason: str) -> None:
        result = run.result
        run.restore_attempted = True
        try:
            await self.snapshots.restore(result.snapshot_id)
        except Exception as e:
            logger.exception("Restoring snapshot %s failed", result.snapshot_id)
            result.errors.append(f"Rollback failed: {e}")
            return
        result.rolled_back = True
        result.rollback_reason = reason
        logger.info("Task %s rolled back to snapshot %s", run.task.task_id, result.snapshot_id)

    async def _terminate_with_error(self, run: _TaskRun) -> TaskExecutionResult:
        result = run.result
        result.success = False
        self._finalize(run)
        try:
            await self._enter(run, ExecutionPhase.ERROR, {"errors": list(result.errors), "result": result})
        except Exception as e:
            logger.exception("Phase callback failed while reporting an error")
            result.errors.append(f"Phase callback failed: {e}")
        return result

    # -- helpers ---------------------------------------------------------

    async def _enter(self, run: _TaskRun, phase: ExecutionPhase, data: dict[str, Any]) -> None:
        run.result.final_phase = phase
        run.result.phase_history.append(phase)
        logger.info("Task %s -> %s", run.task.task_id, phase.value)
        if self.phase_callback is not None:
            await self.phase_callback(phase, data)

    async def _run_agent(
        self,
        run: _TaskRun,
        agent: AgentDescriptor,
        step: int,
        total: int,
        previous_context: str | None,
    ) -> AgentExecutionResult:
        task, result = run.task, run.result
        level = result.trust_levels[agent.id]
        context = PromptContext(
            task_id=task.task_id,
            task_description=task.description,
            agent_id=agent.id,
            step=step,
            total_steps=total,
            trust_level=level,
            privileges=privileges_for(level),
            previous_context=previous_context,
            modified_files=list(result.all_modified_files),
            affected_files=list(task.affected_files),
            metadata=dict(task.metadata),
        )

        started = time.monotonic()
        try:
            outcome = await self.backend.execute(agent, context, run.abort_signal)
        except Exception as e:
            logger.exception("Agent %s raised during execution", agent.id)
            outcome = AgentFailure(kind=FailureKind.EXCEPTION, message=f"{type(e).__name__}: {e}")
        duration_ms = int((time.monotonic() - started) * 1000)

        if isinstance(outcome, AgentFailure):
            agent_result = AgentExecutionResult(
                agent_id=agent.id,
                domain=agent.domain,
                trust_level=level,
                success=False,
                quality_score=outcome.quality_score,
                duration_ms=duration_ms,
                modified_files=list(outcome.modified_files),
                error=outcome.message,
                failure_kind=outcome.kind,
                is_critical_failure=outcome.is_critical_failure,
                is_security_issue=outcome.is_security_issue,
            )
        else:
            agent_result = AgentExecutionResult(
                agent_id=agent.id,
                domain=agent.domain,
                trust_level=level,
                success=True,
                quality_score=outcome.quality_score,
                duration_ms=duration_ms,
                modified_files=list(outcome.modified_files),
                context_for_next=outcome.context_for_next,
            )

        if self.config.enable_trust_cascade:
            self.trust.record_execution(
                agent.id,
                ExecutionOutcome(
                    success=agent_result.success,
                    quality_score=agent_result.quality_score,
                    is_critical_failure=agent_result.is_critical_failure,
                    is_security_issue=agent_result.is_security_issue,
                    error_details=agent_result.error,
                    duration_ms=duration_ms,
                    task_id=task.task_id,
                ),
            )

        logger.info(
            "Agent %s %s (quality %.0f, %sms)",
            agent.id, "succeeded" if agent_result.success else "failed",
            agent_result.quality_score, duration_ms,
        )
        return agent_result

    def _stop_pipeline(
        self, result: TaskExecutionResult, failed: AgentExecutionResult, remaining: list[str]
    ) -> None:
        result.skipped_agents.extend(remaining)
        message = f"Pipeline stopped: {failed.agent_id} failed at {failed.trust_level.name}"
        if remaining:
            message += f"; skipped {', '.join(remaining)}"
        result.warnings.append(message)

    def _trust_level(self, agent_id: str) -> TrustLevel:
        if not self.config.enable_trust_cascade:
            return TrustLevel.L2_GUIDED
        return self.trust.calculate_trust_level(agent_id)

    def _needs_approval(self, task: OrchestratorTask, min_level: TrustLevel) -> bool:
        required = self.config.require_approval if task.require_approval is None else task.require_approval
        return required and min_level <= TrustLevel.L2_GUIDED

    def _needs_snapshot(self, min_level: TrustLevel) -> bool:
        return (
            self.config.enable_snapshots
            and self.snapshots is not None
            and min_level <= self.config.snapshot_trust_threshold
        )

    def _needs_rollback(self, result: TaskExecutionResult, min_level: TrustLevel) -> bool:
        return (
            not result.success
            and result.snapshot_id is not None
            and self.snapshots is not None
            and self.config.auto_rollback_on_failure
            and min_level <= TrustLevel.L1_SUPERVISED
        )

    def _build_plan(
        self, run: _TaskRun, agents: list[AgentDescriptor], selection: AgentSelectionResult
    ) -> dict[str, Any]:
        result = run.result
        return {
            "task_id": run.task.task_id,
            "complexity": selection.complexity.value,
            "analysis": selection.analysis.to_dict() if selection.analysis else {},
            "execution_order": [agent.id for agent in agents],
            "trust_levels": {agent_id: level.name for agent_id, level in result.trust_levels.items()},
            "privileges": {
                agent_id: privileges_for(level).to_dict()
                for agent_id, level in result.trust_levels.items()
            },
            "snapshot_planned": self._needs_snapshot(result.min_trust_level),
            "reasoning": selection.reasoning,
        }

    def _gate_context(self, run: _TaskRun, files: list[str]) -> GateContext:
        return GateContext(
            task_id=run.task.task_id,
            task_description=run.task.description,
            working_dir=str(self.working_dir),
            files=files,
            agent_ids=list(run.result.execution_order),
        )

    def _absorb(self, result: TaskExecutionResult, agent_result: AgentExecutionResult) -> None:
        result.agent_results.append(agent_result)
        for path in agent_result.modified_files:
            if path not in result.all_modified_files:
                result.all_modified_files.append(path)

    def _finalize(self, run: _TaskRun) -> None:
        result = run.result
        result.completed_at = datetime.now()
        result.total_duration_ms = int((time.monotonic() - run.started) * 1000)
        scores = [r.quality_score for r in result.agent_results]
        result.average_quality = round(sum(scores) / len(scores), 2) if scores else 0.0


def _unique_domains(agents: list[AgentDescriptor]) -> list[AgentDomain]:
    domains: list[AgentDomain] = []
    for agent in agents:
        if agent.domain not in domains:
            domains.append(agent.domain)
    return domains
