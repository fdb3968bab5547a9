"""Execution ordering: priority scoring plus a domain dependency pass."""

import logging
from dataclasses import dataclass

from cascade.agents.catalog import AgentDescriptor, AgentDomain
from cascade.selection.analyzer import TaskAnalysis, TaskAnalyzer, TaskType

logger = logging.getLogger(__name__)

D = AgentDomain

BASE_PRIORITIES: dict[AgentDomain, int] = {
    D.SECURITY: 90,
    D.DATABASE: 80,
    D.BACKEND: 70,
    D.AI_ML: 65,
    D.FRONTEND: 60,
    D.GENERAL: 50,
    D.TESTING: 40,
    D.DOCUMENTATION: 30,
    D.DEVOPS: 20,
}

PRIMARY_DOMAIN_BONUS = 100
SECONDARY_DOMAIN_BONUS = 50
SECURITY_SENSITIVE_BONUS = 200
DATA_LAYER_BONUS = 150

TASK_TYPE_ADJUSTMENTS: dict[TaskType, dict[AgentDomain, int]] = {
    TaskType.FEATURE: {D.SECURITY: 10},
    TaskType.BUGFIX: {D.TESTING: 30, D.SECURITY: 10, D.DOCUMENTATION: -10},
    TaskType.REFACTOR: {D.TESTING: 40},
    TaskType.SECURITY: {
        D.SECURITY: 100, D.TESTING: 20, D.FRONTEND: -20, D.BACKEND: 10,
        D.DATABASE: 10, D.AI_ML: -10, D.DOCUMENTATION: -20,
    },
    TaskType.PERFORMANCE: {
        D.BACKEND: 30, D.DATABASE: 30, D.FRONTEND: 20, D.TESTING: 20,
        D.DEVOPS: 10, D.DOCUMENTATION: -20,
    },
    TaskType.DOCUMENTATION: {
        D.DOCUMENTATION: 100, D.SECURITY: -20, D.DATABASE: -20, D.BACKEND: -20,
        D.AI_ML: -20, D.FRONTEND: -20, D.TESTING: -20, D.DEVOPS: -20,
    },
}

# Domains whose work must finish before a domain's agents start
DOMAIN_DEPENDENCIES: dict[AgentDomain, frozenset[AgentDomain]] = {
    D.SECURITY: frozenset(),
    D.DATABASE: frozenset({D.SECURITY}),
    D.BACKEND: frozenset({D.DATABASE, D.SECURITY}),
    D.AI_ML: frozenset({D.BACKEND, D.DATABASE}),
    D.FRONTEND: frozenset({D.BACKEND, D.AI_ML}),
    D.TESTING: frozenset({D.FRONTEND, D.BACKEND, D.DATABASE}),
    D.DOCUMENTATION: frozenset({D.TESTING}),
    D.DEVOPS: frozenset({D.TESTING, D.DOCUMENTATION}),
    D.GENERAL: frozenset(),
}

MAX_PARALLEL_GROUP_SIZE = 4


@dataclass
class ParallelGroup:
    """Agents that may run concurrently"""
    agents: list[AgentDescriptor]
    can_parallelize: bool

    @property
    def agent_ids(self) -> list[str]:
        return [agent.id for agent in self.agents]


class ExecutionOrderAnalyzer:
    """Turns a set of selected agents into a dependency-respecting order."""

    def __init__(self, analyzer: TaskAnalyzer | None = None):
        self.analyzer = analyzer or TaskAnalyzer()

    def calculate_priority(self, agent: AgentDescriptor, analysis: TaskAnalysis) -> int:
        """Priority score for one agent; higher runs earlier."""
        domain = agent.domain
        score = BASE_PRIORITIES.get(domain, BASE_PRIORITIES[D.GENERAL])

        if domain == analysis.primary_domain:
            score += PRIMARY_DOMAIN_BONUS
        elif domain in analysis.secondary_domains:
            score += SECONDARY_DOMAIN_BONUS

        if analysis.is_security_sensitive and domain == D.SECURITY:
            score += SECURITY_SENSITIVE_BONUS
        if analysis.involves_data_layer and domain == D.DATABASE:
            score += DATA_LAYER_BONUS

        score += TASK_TYPE_ADJUSTMENTS.get(analysis.task_type, {}).get(domain, 0)
        return score

    def dependency_domains(self, agent: AgentDescriptor) -> frozenset[AgentDomain]:
        """Domains an agent waits for: the fixed graph plus its own declarations."""
        own = agent.declared_dependencies - {agent.domain}
        return DOMAIN_DEPENDENCIES.get(agent.domain, frozenset()) | own

    def depends_on(
        self,
        agent: AgentDescriptor,
        other: AgentDescriptor,
        selected_domains: set[AgentDomain] | None = None,
    ) -> bool:
        """True if agent must wait for other, directly or through selected domains.

        Walks the dependency graph depth-first with a recursion stack so
        cycles introduced by declared dependencies terminate.
        """
        if agent.domain == other.domain:
            return False

        target = other.domain
        visiting: set[AgentDomain] = set()

        def reaches(domain: AgentDomain, deps: frozenset[AgentDomain]) -> bool:
            if target in deps:
                return True
            visiting.add(domain)
            for dep in deps:
                if dep in visiting:
                    continue
                if selected_domains is not None and dep not in selected_domains:
                    continue
                if reaches(dep, DOMAIN_DEPENDENCIES.get(dep, frozenset())):
                    return True
            visiting.discard(domain)
            return False

        return reaches(agent.domain, self.dependency_domains(agent))

    def determine_execution_order(
        self, agents: list[AgentDescriptor], task_text: str
    ) -> list[AgentDescriptor]:
        """Order agents by priority, then move each after its dependencies."""
        if len(agents) <= 1:
            return list(agents)

        analysis = self.analyzer.analyze_task(task_text)
        priorities = {agent.id: self.calculate_priority(agent, analysis) for agent in agents}
        remaining = sorted(agents, key=lambda a: -priorities[a.id])
        selected_domains = {agent.domain for agent in agents}

        ordered: list[AgentDescriptor] = []
        while remaining:
            pending_domains = {agent.domain for agent in remaining}
            for index, agent in enumerate(remaining):
                blocking = {
                    dep
                    for dep in self.dependency_domains(agent)
                    if dep in selected_domains and dep in pending_domains and dep != agent.domain
                }
                if not blocking:
                    ordered.append(remaining.pop(index))
                    break
            else:
                forced = remaining.pop(0)
                logger.warning(
                    "Dependency cycle among %s; forcing %s next",
                    [a.id for a in remaining] + [forced.id],
                    forced.id,
                )
                ordered.append(forced)

        logger.debug(
            "Execution order: %s",
            ", ".join(f"{a.id}({priorities[a.id]})" for a in ordered),
        )
        return ordered

    def get_parallel_groups(
        self,
        agents: list[AgentDescriptor],
        task_text: str,
        max_group_size: int = MAX_PARALLEL_GROUP_SIZE,
    ) -> list[ParallelGroup]:
        """Batch the execution order into groups with no internal dependencies."""
        ordered = self.determine_execution_order(agents, task_text)
        selected_domains = {agent.domain for agent in ordered}
        groups: list[ParallelGroup] = []
        current: list[AgentDescriptor] = []

        for agent in ordered:
            conflicts = any(
                self.depends_on(agent, member, selected_domains)
                or self.depends_on(member, agent, selected_domains)
                for member in current
            )
            if current and (conflicts or len(current) >= max_group_size):
                groups.append(ParallelGroup(agents=current, can_parallelize=len(current) > 1))
                current = []
            current.append(agent)

        if current:
            groups.append(ParallelGroup(agents=current, can_parallelize=len(current) > 1))
        return groups
