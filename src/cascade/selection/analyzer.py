"""Keyword-based task analysis: domains, task type and complexity."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache

from cascade.agents.catalog import AgentDomain

logger = logging.getLogger(__name__)


class TaskType(str, Enum):
    FEATURE = "feature"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"
    SECURITY = "security"
    PERFORMANCE = "performance"
    DOCUMENTATION = "documentation"
    UNKNOWN = "unknown"


class TaskComplexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


# Iteration order breaks ties for the primary domain
DOMAIN_KEYWORDS: dict[AgentDomain, list[str]] = {
    AgentDomain.FRONTEND: [
        "ui", "ux", "frontend", "react", "vue", "angular", "svelte", "component",
        "css", "html", "style", "layout", "page", "form", "button", "modal",
        "responsive", "tailwind",
    ],
    AgentDomain.BACKEND: [
        "api", "endpoint", "server", "backend", "rest", "graphql", "route",
        "controller", "middleware", "service", "express", "fastapi", "django", "flask",
    ],
    AgentDomain.DATABASE: [
        "database", "db", "sql", "query", "schema", "migration", "table", "orm",
        "postgres", "postgresql", "mysql", "mongodb", "redis", "index", "data model",
    ],
    AgentDomain.SECURITY: [
        "security", "auth", "authentication", "authorization", "jwt", "oauth",
        "password", "encryption", "vulnerability", "xss", "csrf", "permission",
        "token", "secret",
    ],
    AgentDomain.TESTING: [
        "test", "testing", "spec", "coverage", "unit test", "e2e", "integration test",
        "jest", "pytest", "cypress", "playwright", "mock",
    ],
    AgentDomain.DEVOPS: [
        "deploy", "deployment", "docker", "kubernetes", "k8s", "ci", "cd",
        "pipeline", "terraform", "infrastructure", "monitoring", "helm",
    ],
    AgentDomain.AI_ML: [
        "ai", "ml", "llm", "machine learning", "model training", "embedding",
        "neural", "prompt", "rag", "openai", "inference",
    ],
    AgentDomain.DOCUMENTATION: [
        "documentation", "docs", "readme", "guide", "tutorial", "changelog",
        "typo", "comment", "docstring",
    ],
}

# Checked in order, first match wins
TASK_TYPE_KEYWORDS: list[tuple[TaskType, list[str]]] = [
    (TaskType.FEATURE, ["add", "implement", "create", "build", "new", "feature", "introduce"]),
    (TaskType.BUGFIX, ["fix", "bug", "error", "issue", "broken", "crash", "repair"]),
    (TaskType.REFACTOR, ["refactor", "restructure", "clean up", "reorganize", "simplify", "rename"]),
    (TaskType.SECURITY, ["secure", "vulnerability", "audit", "harden", "exploit"]),
    (TaskType.PERFORMANCE, ["performance", "optimize", "speed", "slow", "latency", "cache", "faster"]),
    (TaskType.DOCUMENTATION, ["document", "docs", "readme", "explain"]),
]

SENSITIVE_KEYWORDS = ["password", "token", "auth", "permission"]

COMPLEX_INDICATORS = [
    "architecture", "refactor", "migrate", "security audit", "performance optimization",
    "redesign", "rewrite", "microservice", "distributed", "scale", "infrastructure",
    "breaking change", "major update",
]
MODERATE_INDICATORS = [
    "implement", "add", "create", "update", "fix bug", "integrate", "configure",
    "setup", "build", "develop",
]
SIMPLE_INDICATORS = [
    "typo", "rename", "move", "delete", "remove", "format", "lint", "comment", "documentation",
]

MULTI_FILE_PATTERN = re.compile(
    r"multiple files|several files|across\b.*\bfiles|\d+\s*files", re.IGNORECASE
)
CONCERN_SPLIT_PATTERN = re.compile(r",|;|\band\b|\n\s*(?:[-*]|\d+[.)])\s", re.IGNORECASE)
LONG_TASK_CHARS = 500


# Words that start with a keyword but belong to another vocabulary
FALSE_FRIENDS: dict[str, tuple[str, ...]] = {
    "auth": ("author", "authors", "authored", "authoring", "authorship"),
    "test": ("testament", "testimonial", "testimonials", "testimony", "testify"),
    "form": ("format", "formats", "formatted", "formatting", "formula", "formulas"),
    "secret": ("secretary", "secretaries", "secretariat"),
}


@lru_cache(maxsize=1024)
def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Pattern matching a keyword at a word start.

    Keywords of three characters or fewer ("ai", "ci", "api") must match a
    whole word; longer ones also match as a prefix ("test" hits "testing")
    unless the word is one of the keyword's FALSE_FRIENDS.
    """
    escaped = re.escape(keyword.lower())
    suffix = r"\b" if len(keyword) <= 3 else ""
    friends = FALSE_FRIENDS.get(keyword.lower())
    if friends:
        tails = "|".join(re.escape(word[len(keyword):]) for word in friends)
        suffix = rf"(?!(?:{tails})\b)"
    return re.compile(rf"(?<![\w]){escaped}{suffix}")


def matches_keyword(text: str, keyword: str) -> bool:
    """Check a lower-cased text for a keyword"""
    return keyword_pattern(keyword).search(text) is not None


@dataclass
class TaskAnalysis:
    """Domains, type and risk flags derived from a task description."""

    primary_domain: AgentDomain
    secondary_domains: list[AgentDomain] = field(default_factory=list)
    detected_keywords: set[str] = field(default_factory=set)
    task_type: TaskType = TaskType.UNKNOWN
    involves_data_layer: bool = False
    involves_ui: bool = False
    is_security_sensitive: bool = False
    requires_testing: bool = False
    domain_scores: dict[AgentDomain, int] = field(default_factory=dict)

    @property
    def domains(self) -> list[AgentDomain]:
        """Primary followed by secondary domains."""
        return [self.primary_domain, *self.secondary_domains]

    def to_dict(self) -> dict:
        return {
            "primary_domain": self.primary_domain.value,
            "secondary_domains": [d.value for d in self.secondary_domains],
            "detected_keywords": sorted(self.detected_keywords),
            "task_type": self.task_type.value,
            "involves_data_layer": self.involves_data_layer,
            "involves_ui": self.involves_ui,
            "is_security_sensitive": self.is_security_sensitive,
            "requires_testing": self.requires_testing,
        }


class TaskAnalyzer:
    """Classifies free-text tasks by keyword matching."""

    def __init__(
        self,
        domain_keywords: dict[AgentDomain, list[str]] | None = None,
        task_type_keywords: list[tuple[TaskType, list[str]]] | None = None,
    ):
        self.domain_keywords = domain_keywords or DOMAIN_KEYWORDS
        self.task_type_keywords = task_type_keywords or TASK_TYPE_KEYWORDS

    def analyze_task(self, text: str) -> TaskAnalysis:
        """Classify a task into domains and a task type."""
        lowered = text.lower()
        scores: dict[AgentDomain, int] = {}
        detected: set[str] = set()

        for domain, keywords in self.domain_keywords.items():
            hits = [kw for kw in keywords if matches_keyword(lowered, kw)]
            if hits:
                scores[domain] = len(hits)
                detected.update(hits)

        if scores:
            # max() keeps the first of equal scores, i.e. table order
            primary = max(scores, key=lambda d: scores[d])
            secondary = sorted(
                (d for d in scores if d != primary),
                key=lambda d: -scores[d],
            )
        else:
            primary = AgentDomain.GENERAL
            secondary = []

        task_type = self._detect_task_type(lowered)
        analysis = TaskAnalysis(
            primary_domain=primary,
            secondary_domains=secondary,
            detected_keywords=detected,
            task_type=task_type,
            involves_data_layer=AgentDomain.DATABASE in scores,
            involves_ui=AgentDomain.FRONTEND in scores,
            is_security_sensitive=(
                AgentDomain.SECURITY in scores
                or any(matches_keyword(lowered, kw) for kw in SENSITIVE_KEYWORDS)
            ),
            requires_testing=(
                AgentDomain.TESTING in scores
                or task_type in (TaskType.FEATURE, TaskType.BUGFIX)
            ),
            domain_scores=scores,
        )
        logger.debug("Task analysis: %s", analysis.to_dict())
        return analysis

    def analyze_complexity(self, text: str) -> TaskComplexity:
        """Classify how much work a task is likely to be."""
        lowered = text.lower()
        score = 0
        score += 3 * sum(1 for kw in COMPLEX_INDICATORS if matches_keyword(lowered, kw))
        score += sum(1 for kw in MODERATE_INDICATORS if matches_keyword(lowered, kw))
        score -= sum(1 for kw in SIMPLE_INDICATORS if matches_keyword(lowered, kw))

        domains_mentioned = sum(
            1
            for keywords in self.domain_keywords.values()
            if any(matches_keyword(lowered, kw) for kw in keywords)
        )
        if domains_mentioned >= 2:
            score += 2
        if MULTI_FILE_PATTERN.search(lowered):
            score += 1

        concerns = [part for part in CONCERN_SPLIT_PATTERN.split(lowered) if part.strip()]
        if len(concerns) >= 3:
            score += 2
        if len(text) > LONG_TASK_CHARS:
            score += 1

        if score >= 3:
            return TaskComplexity.COMPLEX
        if score >= 1:
            return TaskComplexity.MODERATE
        return TaskComplexity.SIMPLE

    def _detect_task_type(self, lowered: str) -> TaskType:
        for task_type, keywords in self.task_type_keywords:
            if any(matches_keyword(lowered, kw) for kw in keywords):
                return task_type
        return TaskType.UNKNOWN
