"""Trust cascade engine: execution history in, trust level and privileges out."""

import copy
import logging
from datetime import datetime

from cascade.agents.catalog import AgentCatalog, default_catalog
from cascade.trust.models import (
    LEVEL_THRESHOLDS,
    MAX_EXECUTION_HISTORY,
    MAX_LEVEL_HISTORY,
    PROBATION_EXECUTIONS,
    QUARANTINE_CONSECUTIVE_FAILURES,
    RECENT_WINDOW,
    ExecutionOutcome,
    ExecutionRecord,
    LevelChange,
    ManualOverride,
    PrivilegeSet,
    TrustLevel,
    TrustMetrics,
    TrustSummary,
    initial_level_for,
    privileges_for,
)
from cascade.trust.store import TrustStore

logger = logging.getLogger(__name__)

# Weight of the newest sample in the rolling quality score
QUALITY_EMA_ALPHA = 0.3


class TrustCascadeEngine:
    """Derives each agent's trust level from its execution history.

    Levels are never cached: every query recomputes from the stored
    metrics, so history and level cannot drift apart.

    Manual overrides set with set_trust_level are sticky. They stay in
    effect until clear_override, clear_quarantine or reset_agent is
    called, or until a recorded execution trips a quarantine trigger.
    """

    def __init__(
        self,
        store: TrustStore | None = None,
        catalog: AgentCatalog | None = None,
        max_history: int = MAX_EXECUTION_HISTORY,
    ):
        self.store = store or TrustStore.in_memory()
        self.catalog = catalog or default_catalog()
        self.max_history = max_history
        self._metrics: dict[str, TrustMetrics] | None = None

    # -- queries ---------------------------------------------------------

    def calculate_trust_level(self, agent_id: str) -> TrustLevel:
        """Current trust level for an agent."""
        metrics = self._records().get(agent_id)
        if metrics is None:
            return self.initial_level(agent_id)
        return self._compute_level(metrics)

    def initial_level(self, agent_id: str) -> TrustLevel:
        """Level an agent starts at, based on its domain."""
        return initial_level_for(self.catalog.domain_of(agent_id))

    def get_privileges(self, agent_id: str) -> PrivilegeSet:
        return privileges_for(self.calculate_trust_level(agent_id))

    def is_quarantined(self, agent_id: str) -> bool:
        return self.calculate_trust_level(agent_id) == TrustLevel.L0_QUARANTINE

    def get_quarantine_reason(self, agent_id: str) -> str | None:
        """Why an agent is quarantined, or None if it is not."""
        metrics = self._records().get(agent_id)
        if metrics is None:
            return None
        return self._quarantine_reason(metrics)

    def get_metrics(self, agent_id: str) -> TrustMetrics | None:
        """Copy of an agent's metrics, or None if it has never been tracked."""
        metrics = self._records().get(agent_id)
        return copy.deepcopy(metrics) if metrics else None

    def get_all_metrics(self) -> dict[str, TrustMetrics]:
        return copy.deepcopy(self._records())

    def get_summary(self, recent_limit: int = 10) -> TrustSummary:
        """Counts by level, quarantined agents and the latest level changes."""
        records = self._records()
        by_level = {level: 0 for level in TrustLevel}
        quarantined: list[str] = []
        qualities: list[float] = []
        changes: list[tuple[str, LevelChange]] = []

        for agent_id, metrics in records.items():
            level = self._compute_level(metrics)
            by_level[level] += 1
            if level == TrustLevel.L0_QUARANTINE:
                quarantined.append(agent_id)
            if metrics.total_executions > 0:
                qualities.append(metrics.rolling_quality_score)
            changes.extend((agent_id, change) for change in metrics.level_history)

        changes.sort(key=lambda item: item[1].timestamp, reverse=True)
        return TrustSummary(
            total_agents=len(records),
            by_level=by_level,
            quarantined=sorted(quarantined),
            average_quality=round(sum(qualities) / len(qualities), 2) if qualities else 0.0,
            recent_changes=changes[:recent_limit],
        )

    # -- mutations -------------------------------------------------------

    def record_execution(self, agent_id: str, outcome: ExecutionOutcome) -> TrustLevel:
        """Fold one execution into an agent's metrics and return its new level."""
        records = self._records()
        metrics = records.get(agent_id) or TrustMetrics(agent_id=agent_id)
        records[agent_id] = metrics
        before = self._compute_level(metrics)
        now = datetime.now()
        quality = min(100.0, max(0.0, float(outcome.quality_score)))

        metrics.total_executions += 1
        if outcome.success:
            metrics.successful_executions += 1
            metrics.consecutive_failures = 0
        else:
            metrics.failed_executions += 1
            metrics.consecutive_failures += 1

        if outcome.is_critical_failure:
            metrics.last_critical_failure_at = now
        if outcome.is_security_issue:
            metrics.last_security_issue_at = now

        if metrics.total_executions == 1:
            metrics.rolling_quality_score = quality
        else:
            metrics.rolling_quality_score = round(
                QUALITY_EMA_ALPHA * quality + (1 - QUALITY_EMA_ALPHA) * metrics.rolling_quality_score,
                2,
            )

        metrics.recent_results.append(outcome.success)
        del metrics.recent_results[:-RECENT_WINDOW]

        metrics.execution_history.append(
            ExecutionRecord(
                timestamp=now,
                success=outcome.success,
                quality_score=quality,
                duration_ms=outcome.duration_ms,
                task_id=outcome.task_id,
                error=outcome.error_details,
                critical=outcome.is_critical_failure,
                security=outcome.is_security_issue,
            )
        )
        del metrics.execution_history[:-self.max_history]
        metrics.last_execution_at = now

        reason = self._quarantine_reason(metrics, include_override=False)
        if reason and metrics.manual_override is not None:
            logger.warning("Dropping manual override for %s: %s", agent_id, reason)
            metrics.manual_override = None

        after = self._compute_level(metrics)
        if after != before:
            self._note_change(metrics, after, reason or ("success" if outcome.success else "failure"))
            if after == TrustLevel.L0_QUARANTINE:
                logger.warning("Agent %s quarantined: %s", agent_id, reason)
            else:
                logger.info("Agent %s trust %s -> %s", agent_id, before.name, after.name)

        self._persist()
        return after

    def set_trust_level(self, agent_id: str, level: TrustLevel | int | str, reason: str) -> None:
        """Pin an agent to a level until the override is cleared."""
        level = TrustLevel.parse(level)
        records = self._records()
        metrics = records.get(agent_id) or TrustMetrics(agent_id=agent_id)
        records[agent_id] = metrics

        metrics.manual_override = ManualOverride(level=level, reason=reason, timestamp=datetime.now())
        self._note_change(metrics, level, f"manual override: {reason}", force=True)
        logger.info("Trust level for %s manually set to %s: %s", agent_id, level.name, reason)
        self._persist()

    def clear_override(self, agent_id: str) -> bool:
        """Remove a manual override. Returns False if there was none."""
        metrics = self._records().get(agent_id)
        if metrics is None or metrics.manual_override is None:
            return False

        metrics.manual_override = None
        self._note_change(metrics, self._compute_level(metrics), "manual override cleared", force=True)
        logger.info("Manual override cleared for %s", agent_id)
        self._persist()
        return True

    def clear_quarantine(self, agent_id: str, reason: str) -> bool:
        """Lift quarantine and restart the agent at its domain initial level.

        Returns False, changing nothing, if the agent is not quarantined.
        Execution counters start over; the execution history is kept.
        """
        metrics = self._records().get(agent_id)
        if metrics is None or self._compute_level(metrics) != TrustLevel.L0_QUARANTINE:
            return False

        metrics.last_critical_failure_at = None
        metrics.last_security_issue_at = None
        metrics.manual_override = None
        metrics.consecutive_failures = 0
        metrics.total_executions = 0
        metrics.successful_executions = 0
        metrics.failed_executions = 0
        metrics.rolling_quality_score = 0.0
        metrics.recent_results.clear()

        level = self._compute_level(metrics)
        self._note_change(metrics, level, f"quarantine cleared: {reason}", force=True)
        logger.info("Quarantine cleared for %s (now %s): %s", agent_id, level.name, reason)
        self._persist()
        return True

    def reset_agent(self, agent_id: str) -> bool:
        """Forget everything about an agent. Returns False if it was unknown."""
        records = self._records()
        if agent_id not in records:
            return False
        del records[agent_id]
        logger.info("Trust metrics reset for %s", agent_id)
        self._persist()
        return True

    def reload(self) -> None:
        """Drop in-memory state and re-read the store on next access."""
        self._metrics = None

    # -- internals -------------------------------------------------------

    def _records(self) -> dict[str, TrustMetrics]:
        if self._metrics is None:
            self._metrics = self.store.load()
        return self._metrics

    def _persist(self) -> None:
        self.store.save(self._records())

    def _quarantine_reason(self, metrics: TrustMetrics, include_override: bool = True) -> str | None:
        if metrics.has_sticky_quarantine:
            return "critical failure" if metrics.last_critical_failure_at is not None else "security issue"
        if metrics.consecutive_failures >= QUARANTINE_CONSECUTIVE_FAILURES:
            return f"{metrics.consecutive_failures} consecutive failures"
        override = metrics.manual_override
        if include_override and override is not None and override.level == TrustLevel.L0_QUARANTINE:
            return f"manual quarantine: {override.reason}"
        return None

    def _compute_level(self, metrics: TrustMetrics) -> TrustLevel:
        if self._quarantine_reason(metrics):
            return TrustLevel.L0_QUARANTINE
        if metrics.manual_override is not None:
            return metrics.manual_override.level

        initial = self.initial_level(metrics.agent_id)
        if metrics.total_executions == 0:
            return initial

        recent_failures = metrics.recent_failures
        if metrics.total_executions < PROBATION_EXECUTIONS:
            return TrustLevel(max(TrustLevel.L1_SUPERVISED, initial - recent_failures))

        level = TrustLevel.L1_SUPERVISED
        for candidate, threshold in LEVEL_THRESHOLDS.items():
            if (
                metrics.total_executions >= threshold.min_executions
                and metrics.success_rate >= threshold.min_success_rate
                and metrics.rolling_quality_score >= threshold.min_quality
                and recent_failures <= threshold.max_recent_failures
            ):
                level = candidate
                break

        if recent_failures == 0:
            level = max(level, initial)
        return level

    def _note_change(
        self, metrics: TrustMetrics, level: TrustLevel, reason: str, force: bool = False
    ) -> None:
        last = metrics.level_history[-1].level if metrics.level_history else None
        if not force and last == level:
            return
        metrics.level_history.append(LevelChange(timestamp=datetime.now(), level=level, reason=reason))
        del metrics.level_history[:-MAX_LEVEL_HISTORY]
