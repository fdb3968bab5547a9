"""Agent catalog and execution backends."""

from cascade.agents.catalog import AgentCatalog, AgentDescriptor, AgentDomain, default_catalog

__all__ = ["AgentCatalog", "AgentDescriptor", "AgentDomain", "default_catalog"]
