"""Tests for ExecutionOrderAnalyzer"""
import logging
from dataclasses import replace

import pytest

from cascade.agents.catalog import AgentDomain
from cascade.orchestration.ordering import DOMAIN_DEPENDENCIES, ExecutionOrderAnalyzer

AUTH_TASK = "Add JWT authentication to the REST API and update the users table"


@pytest.fixture
def ordering():
    return ExecutionOrderAnalyzer()


def assert_dependencies_first(order, ordering):
    """Every agent runs after all selected agents of the domains it depends on"""
    selected_domains = {agent.domain for agent in order}
    for index, agent in enumerate(order):
        later_domains = {other.domain for other in order[index + 1:]}
        blocked = (ordering.dependency_domains(agent) & selected_domains & later_domains) - {agent.domain}
        assert not blocked, f"{agent.id} runs before {blocked}"


def test_auth_task_runs_security_then_database_then_backend(ordering, catalog):
    agents = [catalog.require(a) for a in ("backend-developer", "database-architect", "security-auditor")]

    order = ordering.determine_execution_order(agents, AUTH_TASK)

    assert [a.id for a in order] == ["security-auditor", "database-architect", "backend-developer"]


def test_priority_scores(ordering, catalog):
    analysis = ordering.analyzer.analyze_task(AUTH_TASK)

    # base 90 + primary 100 + sensitive 200 + feature 10
    assert ordering.calculate_priority(catalog.require("security-auditor"), analysis) == 400
    # base 80 + secondary 50 + data layer 150
    assert ordering.calculate_priority(catalog.require("database-architect"), analysis) == 280
    assert ordering.calculate_priority(catalog.require("technical-writer"), analysis) == 30


@pytest.mark.parametrize(
    "task",
    [
        AUTH_TASK,
        "Fix typo in README",
        "Document the deployment pipeline",
        "Optimize slow database queries behind the React dashboard",
        "Harden the security of the LLM prompt pipeline",
    ],
)
def test_dependencies_always_run_first(ordering, catalog, task):
    order = ordering.determine_execution_order(list(catalog), task)

    assert sorted(a.id for a in order) == sorted(catalog.ids())
    assert_dependencies_first(order, ordering)


def test_single_agent_is_returned_as_is(ordering, catalog):
    agent = catalog.require("technical-writer")
    assert ordering.determine_execution_order([agent], "anything") == [agent]
    assert ordering.determine_execution_order([], "anything") == []


def test_depends_on_direct_and_transitive(ordering, catalog):
    frontend = catalog.require("frontend-developer")
    backend = catalog.require("backend-developer")
    tester = catalog.require("testing-runner")
    security = catalog.require("security-auditor")

    assert ordering.depends_on(frontend, backend)
    assert not ordering.depends_on(backend, frontend)
    assert not ordering.depends_on(frontend, catalog.require("react-specialist"))

    through_backend = {AgentDomain.TESTING, AgentDomain.BACKEND, AgentDomain.SECURITY}
    assert ordering.depends_on(tester, security, through_backend)
    assert not ordering.depends_on(tester, security, {AgentDomain.TESTING, AgentDomain.SECURITY})


def test_declared_dependencies_extend_the_graph(ordering, catalog):
    writer = replace(
        catalog.require("technical-writer"),
        declared_dependencies=frozenset({AgentDomain.SECURITY}),
    )
    assert AgentDomain.SECURITY not in DOMAIN_DEPENDENCIES[AgentDomain.DOCUMENTATION]
    assert ordering.dependency_domains(writer) == {AgentDomain.TESTING, AgentDomain.SECURITY}

    order = ordering.determine_execution_order(
        [writer, catalog.require("security-auditor")], "Write the changelog docs"
    )
    assert [a.id for a in order] == ["security-auditor", "technical-writer"]


def test_cycle_is_broken_by_priority(ordering, catalog, caplog):
    """A declared dependency that closes a cycle still yields a full order"""
    looping = replace(
        catalog.require("database-architect"),
        declared_dependencies=frozenset({AgentDomain.BACKEND}),
    )
    backend = catalog.require("backend-developer")

    with caplog.at_level(logging.WARNING, logger="cascade.orchestration.ordering"):
        order = ordering.determine_execution_order([backend, looping], "xyzzy")

    assert [a.id for a in order] == ["database-architect", "backend-developer"]
    assert "Dependency cycle" in caplog.text


def test_parallel_groups_never_pair_dependents(ordering, catalog):
    for task in (AUTH_TASK, "Build a React dashboard with tests"):
        groups = ordering.get_parallel_groups(list(catalog), task)
        flat = [agent for group in groups for agent in group.agents]
        selected_domains = {agent.domain for agent in flat}

        assert [a.id for a in flat] == [a.id for a in ordering.determine_execution_order(list(catalog), task)]
        for group in groups:
            assert 1 <= len(group.agents) <= 4
            assert group.can_parallelize == (len(group.agents) > 1)
            for a in group.agents:
                for b in group.agents:
                    assert not ordering.depends_on(a, b, selected_domains)


def test_dependent_chain_runs_one_at_a_time(ordering, catalog):
    agents = [catalog.require(a) for a in ("backend-developer", "database-architect", "security-auditor")]

    groups = ordering.get_parallel_groups(agents, AUTH_TASK)

    assert [g.agent_ids for g in groups] == [["security-auditor"], ["database-architect"], ["backend-developer"]]
    assert not any(g.can_parallelize for g in groups)


def test_independent_agents_are_grouped_up_to_the_limit(ordering, catalog):
    agents = [
        catalog.require(a)
        for a in ("ui-ux-designer", "accessibility-expert", "frontend-developer", "react-specialist", "technical-writer")
    ]

    groups = ordering.get_parallel_groups(agents, "xyzzy")

    assert [len(g.agents) for g in groups] == [4, 1]
    assert groups[0].can_parallelize
    assert groups[1].agent_ids == ["technical-writer"]

    assert [len(g.agents) for g in ordering.get_parallel_groups(agents, "xyzzy", max_group_size=2)] == [2, 2, 1]
