"""Agent catalog: static descriptors for every specialist agent."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from cascade.errors import UnknownAgentError


class AgentDomain(str, Enum):
    """Fixed set of domains an agent can belong to."""

    FRONTEND = "frontend"
    BACKEND = "backend"
    DATABASE = "database"
    SECURITY = "security"
    TESTING = "testing"
    DEVOPS = "devops"
    AI_ML = "ai-ml"
    DOCUMENTATION = "documentation"
    GENERAL = "general"


@dataclass(frozen=True)
class AgentDescriptor:
    """Immutable catalog entry for a single agent."""

    id: str
    name: str
    domain: AgentDomain
    trigger_keywords: frozenset[str]
    static_priority: int  # 1-10, higher wins ties in selection
    description: str = ""
    declared_dependencies: frozenset[AgentDomain] = field(default_factory=frozenset)
    tools: tuple[str, ...] = ("read", "write")
    max_files_per_task: int = 20
    can_spawn_sub_agents: bool = False

    def to_dict(self) -> dict:
        """Convert to dict for display and logging"""
        return {
            "id": self.id,
            "name": self.name,
            "domain": self.domain.value,
            "trigger_keywords": sorted(self.trigger_keywords),
            "static_priority": self.static_priority,
            "declared_dependencies": sorted(d.value for d in self.declared_dependencies),
            "tools": list(self.tools),
            "max_files_per_task": self.max_files_per_task,
            "can_spawn_sub_agents": self.can_spawn_sub_agents,
        }


def _agent(
    id: str,
    name: str,
    domain: AgentDomain,
    keywords: Iterable[str],
    priority: int,
    description: str,
    depends_on: Iterable[AgentDomain] = (),
    tools: tuple[str, ...] = ("read", "write"),
    max_files: int = 20,
    can_spawn: bool = False,
) -> AgentDescriptor:
    return AgentDescriptor(
        id=id,
        name=name,
        domain=domain,
        trigger_keywords=frozenset(keywords),
        static_priority=priority,
        description=description,
        declared_dependencies=frozenset(depends_on),
        tools=tools,
        max_files_per_task=max_files,
        can_spawn_sub_agents=can_spawn,
    )


BUILTIN_AGENTS: tuple[AgentDescriptor, ...] = (
    # Frontend
    _agent(
        "frontend-developer",
        "Frontend Developer",
        AgentDomain.FRONTEND,
        ["frontend", "ui", "component", "react", "vue", "angular", "svelte",
         "css", "html", "layout", "page", "tailwind"],
        7,
        "Builds user interfaces and client-side application logic",
        depends_on=[AgentDomain.BACKEND],
        tools=("read", "write", "execute"),
        can_spawn=True,
    ),
    _agent(
        "react-specialist",
        "React Specialist",
        AgentDomain.FRONTEND,
        ["react", "component", "hook", "jsx", "tsx", "next.js", "redux", "state management"],
        8,
        "React components, hooks and client state",
        depends_on=[AgentDomain.BACKEND],
        tools=("read", "write", "execute"),
    ),
    _agent(
        "ui-ux-designer",
        "UI/UX Designer",
        AgentDomain.FRONTEND,
        ["design", "ux", "user experience", "wireframe", "responsive", "theme", "style"],
        5,
        "Visual design, interaction patterns and design systems",
        max_files=10,
    ),
    _agent(
        "accessibility-expert",
        "Accessibility Expert",
        AgentDomain.FRONTEND,
        ["accessibility", "a11y", "aria", "screen reader", "wcag", "contrast"],
        6,
        "WCAG compliance and assistive technology support",
        max_files=10,
    ),
    # Backend
    _agent(
        "backend-developer",
        "Backend Developer",
        AgentDomain.BACKEND,
        ["backend", "api", "endpoint", "server", "rest", "route", "controller",
         "middleware", "express", "fastapi", "django", "flask"],
        7,
        "Server-side services, business logic and HTTP APIs",
        depends_on=[AgentDomain.DATABASE, AgentDomain.SECURITY],
        tools=("read", "write", "execute"),
        can_spawn=True,
    ),
    _agent(
        "api-architect",
        "API Architect",
        AgentDomain.BACKEND,
        ["api design", "openapi", "graphql", "rest api", "versioning", "contract", "schema design"],
        6,
        "API contracts, versioning and service boundaries",
        depends_on=[AgentDomain.SECURITY],
        max_files=10,
    ),
    _agent(
        "integration-specialist",
        "Integration Specialist",
        AgentDomain.BACKEND,
        ["integration", "webhook", "third-party", "payment", "stripe", "sdk"],
        5,
        "Third-party services, webhooks and external SDKs",
        tools=("read", "write", "execute"),
    ),
    # Database
    _agent(
        "database-architect",
        "Database Architect",
        AgentDomain.DATABASE,
        ["database", "schema", "table", "sql", "postgres", "postgresql", "mysql",
         "mongodb", "orm", "data model"],
        8,
        "Schema design, data modelling and persistence layers",
        depends_on=[AgentDomain.SECURITY],
    ),
    _agent(
        "migration-specialist",
        "Migration Specialist",
        AgentDomain.DATABASE,
        ["migration", "migrate", "alter table", "seed", "backfill"],
        6,
        "Schema migrations and data backfills",
        tools=("read", "write", "execute"),
    ),
    _agent(
        "query-optimizer",
        "Query Optimizer",
        AgentDomain.DATABASE,
        ["query", "slow query", "n+1", "index", "explain plan", "join"],
        5,
        "Query performance and indexing strategy",
        max_files=10,
    ),
    # Security
    _agent(
        "security-auditor",
        "Security Auditor",
        AgentDomain.SECURITY,
        ["security", "auth", "authentication", "authorization", "jwt", "oauth",
         "password", "token", "permission", "encryption", "vulnerability", "xss",
         "csrf", "injection"],
        9,
        "Authentication, authorization and vulnerability review",
        tools=("read", "write", "execute"),
    ),
    _agent(
        "compliance-auditor",
        "Compliance Auditor",
        AgentDomain.SECURITY,
        ["compliance", "gdpr", "hipaa", "pii", "soc2", "audit"],
        5,
        "Regulatory compliance and data protection review",
        tools=("read",),
        max_files=5,
    ),
    # Testing
    _agent(
        "testing-runner",
        "Test Runner",
        AgentDomain.TESTING,
        ["test", "unit test", "coverage", "pytest", "jest", "regression", "mock", "spec"],
        6,
        "Writes and runs unit and integration tests",
        tools=("read", "write", "execute"),
    ),
    _agent(
        "e2e-tester",
        "E2E Tester",
        AgentDomain.TESTING,
        ["e2e", "end-to-end", "playwright", "cypress", "selenium", "integration test"],
        5,
        "Browser and end-to-end test suites",
        tools=("read", "write", "execute"),
    ),
    _agent(
        "code-reviewer",
        "Code Reviewer",
        AgentDomain.TESTING,
        ["review", "code review", "lint", "code quality", "code smell"],
        4,
        "Reviews changes for correctness and maintainability",
        tools=("read",),
        max_files=50,
    ),
    # DevOps
    _agent(
        "devops-engineer",
        "DevOps Engineer",
        AgentDomain.DEVOPS,
        ["deploy", "deployment", "docker", "kubernetes", "k8s", "terraform",
         "infrastructure", "helm", "monitoring"],
        6,
        "Deployment, containers and infrastructure as code",
        tools=("read", "write", "execute"),
    ),
    _agent(
        "ci-cd-specialist",
        "CI/CD Specialist",
        AgentDomain.DEVOPS,
        ["ci", "cd", "pipeline", "github actions", "workflow", "release"],
        5,
        "Build pipelines and release automation",
        tools=("read", "write", "execute"),
    ),
    # AI/ML
    _agent(
        "ai-engineer",
        "AI Engineer",
        AgentDomain.AI_ML,
        ["ai", "llm", "ml", "machine learning", "embedding", "rag", "neural",
         "inference", "openai", "model training"],
        7,
        "LLM integration, retrieval and model-backed features",
        depends_on=[AgentDomain.BACKEND],
        tools=("read", "write", "execute"),
    ),
    _agent(
        "prompt-engineer",
        "Prompt Engineer",
        AgentDomain.AI_ML,
        ["prompt", "system prompt", "few-shot", "chain of thought"],
        5,
        "Prompt design and evaluation",
        max_files=10,
    ),
    # Documentation
    _agent(
        "technical-writer",
        "Technical Writer",
        AgentDomain.DOCUMENTATION,
        ["documentation", "docs", "readme", "guide", "tutorial", "typo", "changelog"],
        4,
        "User-facing documentation and guides",
        max_files=10,
    ),
    _agent(
        "api-documenter",
        "API Documenter",
        AgentDomain.DOCUMENTATION,
        ["api docs", "api reference", "docstring", "reference docs"],
        3,
        "Reference documentation for public APIs",
        max_files=10,
    ),
    # General
    _agent(
        "general-assistant",
        "General Assistant",
        AgentDomain.GENERAL,
        [],
        1,
        "Fallback agent for tasks no specialist matches",
    ),
)


class AgentCatalog:
    """Read-only lookup over agent descriptors.

    Instances are built once and passed to the components that need them;
    there is no module-level registry.
    """

    def __init__(self, agents: Iterable[AgentDescriptor]):
        self._agents: dict[str, AgentDescriptor] = {}
        for agent in agents:
            if agent.id in self._agents:
                raise ValueError(f"Duplicate agent id in catalog: {agent.id}")
            self._agents[agent.id] = agent

    def __iter__(self) -> Iterator[AgentDescriptor]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def get(self, agent_id: str) -> AgentDescriptor | None:
        """Get a descriptor by id, or None if unknown."""
        return self._agents.get(agent_id)

    def require(self, agent_id: str) -> AgentDescriptor:
        """Get a descriptor by id, raising UnknownAgentError if missing."""
        agent = self._agents.get(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id)
        return agent

    def ids(self) -> list[str]:
        """All agent ids in catalog order."""
        return list(self._agents)

    def by_domain(self, domain: AgentDomain) -> list[AgentDescriptor]:
        """All agents belonging to a domain, in catalog order."""
        return [agent for agent in self._agents.values() if agent.domain == domain]

    def domain_of(self, agent_id: str) -> AgentDomain:
        """Domain for an agent id; unknown ids are treated as general."""
        agent = self._agents.get(agent_id)
        return agent.domain if agent else AgentDomain.GENERAL

    def general_agent(self) -> AgentDescriptor | None:
        """First general-domain agent, used as fallback when nothing matches."""
        general = self.by_domain(AgentDomain.GENERAL)
        return general[0] if general else None


def default_catalog() -> AgentCatalog:
    """Create a catalog holding the built-in agents."""
    return AgentCatalog(BUILTIN_AGENTS)
