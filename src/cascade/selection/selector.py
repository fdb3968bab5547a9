"""Agent selection: score catalog agents against a task and keep the best."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from cascade.agents.catalog import AgentCatalog, AgentDescriptor
from cascade.selection.analyzer import TaskAnalysis, TaskAnalyzer, TaskComplexity, matches_keyword

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGENTS = 5
KEYWORD_MATCH_POINTS = 10.0
PRIMARY_DOMAIN_MULTIPLIER = 1.5


@dataclass
class AgentSelectionResult:
    """Agents chosen for a task, highest score first."""

    selected_agents: list[AgentDescriptor]
    complexity: TaskComplexity
    scores: dict[str, float] = field(default_factory=dict)
    reasoning: str = ""
    analysis: TaskAnalysis | None = None
    unknown_forced: list[str] = field(default_factory=list)

    @property
    def agent_ids(self) -> list[str]:
        return [agent.id for agent in self.selected_agents]


class AgentSelector:
    """Scores every catalog agent by trigger keyword overlap with a task."""

    def __init__(
        self,
        catalog: AgentCatalog,
        analyzer: TaskAnalyzer | None = None,
        max_agents: int = DEFAULT_MAX_AGENTS,
    ):
        self.catalog = catalog
        self.analyzer = analyzer or TaskAnalyzer()
        self.max_agents = max_agents

    def score_agent(self, agent: AgentDescriptor, text: str, analysis: TaskAnalysis) -> float:
        """Score one agent; 0 means no trigger keyword matched.

        Each matched keyword is worth 10 points, scaled by the agent's
        static priority, with a 1.5x boost for the task's primary domain.
        """
        lowered = text.lower()
        matched = [kw for kw in agent.trigger_keywords if matches_keyword(lowered, kw)]
        if not matched:
            return 0.0

        score = KEYWORD_MATCH_POINTS * len(matched) * (1 + agent.static_priority / 10)
        if agent.domain == analysis.primary_domain:
            score *= PRIMARY_DOMAIN_MULTIPLIER
        return round(score, 2)

    def select_agents(
        self,
        text: str,
        force_agents: Iterable[str] = (),
        skip_agents: Iterable[str] = (),
        max_agents: int | None = None,
    ) -> AgentSelectionResult:
        """Pick the highest-scoring agents for a task.

        Args:
            text: Free-text task description.
            force_agents: Catalog ids added regardless of score or cap.
            skip_agents: Ids removed from the final selection.
            max_agents: Cap on scored agents; defaults to the selector's cap.

        Returns:
            AgentSelectionResult with agents in descending score order.
        """
        cap = self.max_agents if max_agents is None else max_agents
        analysis = self.analyzer.analyze_task(text)
        complexity = self.analyzer.analyze_complexity(text)

        scores: dict[str, float] = {}
        for agent in self.catalog:
            score = self.score_agent(agent, text, analysis)
            if score > 0:
                scores[agent.id] = score

        # sorted() is stable, so equal scores keep catalog order
        ranked = sorted(scores, key=lambda agent_id: -scores[agent_id])
        selected_ids = ranked[: max(cap, 0)]
        dropped = ranked[len(selected_ids):]

        unknown_forced: list[str] = []
        forced_added: list[str] = []
        for agent_id in force_agents:
            if agent_id not in self.catalog:
                logger.warning("Ignoring unknown forced agent: %s", agent_id)
                unknown_forced.append(agent_id)
                continue
            if agent_id not in selected_ids:
                selected_ids.append(agent_id)
                forced_added.append(agent_id)

        skip = set(skip_agents)
        skipped = [agent_id for agent_id in selected_ids if agent_id in skip]
        selected_ids = [agent_id for agent_id in selected_ids if agent_id not in skip]

        selected = [self.catalog.require(agent_id) for agent_id in selected_ids]
        reasoning = self._build_reasoning(analysis, complexity, selected, scores, dropped, forced_added, skipped)
        logger.debug("Selected agents %s for task: %s", selected_ids, reasoning)

        return AgentSelectionResult(
            selected_agents=selected,
            complexity=complexity,
            scores=scores,
            reasoning=reasoning,
            analysis=analysis,
            unknown_forced=unknown_forced,
        )

    def _build_reasoning(
        self,
        analysis: TaskAnalysis,
        complexity: TaskComplexity,
        selected: list[AgentDescriptor],
        scores: dict[str, float],
        dropped: list[str],
        forced: list[str],
        skipped: list[str],
    ) -> str:
        parts = [
            f"{complexity.value} {analysis.task_type.value} task, "
            f"primary domain {analysis.primary_domain.value}"
        ]
        if selected:
            parts.append(
                "selected "
                + ", ".join(f"{a.id} ({scores.get(a.id, 0):g})" for a in selected)
            )
        else:
            parts.append("no agent matched")
        if dropped:
            parts.append(f"over cap: {', '.join(dropped)}")
        if forced:
            parts.append(f"forced: {', '.join(forced)}")
        if skipped:
            parts.append(f"skipped: {', '.join(skipped)}")
        return "; ".join(parts)
