"""Tests for the agent catalog"""
import pytest

from cascade.agents.catalog import (
    BUILTIN_AGENTS,
    AgentCatalog,
    AgentDomain,
    default_catalog,
)
from cascade.errors import UnknownAgentError


def test_builtin_ids_are_unique(catalog):
    assert len(catalog) == len(BUILTIN_AGENTS)
    assert len(set(catalog.ids())) == len(BUILTIN_AGENTS)


def test_every_domain_has_an_agent(catalog):
    for domain in AgentDomain:
        assert catalog.by_domain(domain), domain


def test_priorities_are_in_range(catalog):
    for agent in catalog:
        assert 1 <= agent.static_priority <= 10
        assert agent.domain not in agent.declared_dependencies


def test_lookup(catalog):
    agent = catalog.require("security-auditor")
    assert agent.domain == AgentDomain.SECURITY
    assert "security-auditor" in catalog
    assert catalog.get("nope") is None

    with pytest.raises(UnknownAgentError) as exc_info:
        catalog.require("nope")
    assert exc_info.value.agent_id == "nope"


def test_domain_of_unknown_agent_is_general(catalog):
    assert catalog.domain_of("database-architect") == AgentDomain.DATABASE
    assert catalog.domain_of("who-knows") == AgentDomain.GENERAL


def test_general_agent_fallback(catalog):
    assert catalog.general_agent().id == "general-assistant"
    assert catalog.general_agent().trigger_keywords == frozenset()

    without_general = AgentCatalog(a for a in BUILTIN_AGENTS if a.domain != AgentDomain.GENERAL)
    assert without_general.general_agent() is None


def test_duplicate_ids_rejected():
    agent = default_catalog().require("backend-developer")
    with pytest.raises(ValueError):
        AgentCatalog([agent, agent])


def test_descriptor_to_dict(catalog):
    data = catalog.require("backend-developer").to_dict()
    assert data["domain"] == "backend"
    assert data["declared_dependencies"] == ["database", "security"]
    assert "api" in data["trigger_keywords"]
