"""Tests for TaskAnalyzer"""
import pytest

from cascade.agents.catalog import AgentDomain
from cascade.selection.analyzer import TaskAnalyzer, TaskComplexity, TaskType, matches_keyword


@pytest.fixture
def analyzer():
    return TaskAnalyzer()


def test_typo_fix_is_simple_documentation_bugfix(analyzer):
    analysis = analyzer.analyze_task("Fix typo in README")

    assert analysis.primary_domain == AgentDomain.DOCUMENTATION
    assert analysis.secondary_domains == []
    assert analysis.task_type == TaskType.BUGFIX
    assert {"typo", "readme"} <= analysis.detected_keywords
    assert analyzer.analyze_complexity("Fix typo in README") == TaskComplexity.SIMPLE


def test_multi_domain_task(analyzer):
    text = "Add JWT authentication to the REST API and update the users table"
    analysis = analyzer.analyze_task(text)

    assert analysis.primary_domain == AgentDomain.SECURITY
    assert analysis.secondary_domains == [AgentDomain.BACKEND, AgentDomain.DATABASE]
    assert analysis.task_type == TaskType.FEATURE
    assert analysis.is_security_sensitive
    assert analysis.involves_data_layer
    assert not analysis.involves_ui
    assert analysis.requires_testing
    assert analyzer.analyze_complexity(text) == TaskComplexity.COMPLEX


def test_no_keywords_means_general(analyzer):
    analysis = analyzer.analyze_task("xyzzy random gibberish")

    assert analysis.primary_domain == AgentDomain.GENERAL
    assert analysis.domains == [AgentDomain.GENERAL]
    assert analysis.task_type == TaskType.UNKNOWN
    assert analysis.detected_keywords == set()


def test_primary_domain_ties_follow_table_order(analyzer):
    analysis = analyzer.analyze_task("css for the server")
    assert analysis.primary_domain == AgentDomain.FRONTEND
    assert analysis.secondary_domains == [AgentDomain.BACKEND]


def test_sensitive_words_flag_security(analyzer):
    analysis = analyzer.analyze_task("Store the password hash")
    assert analysis.is_security_sensitive


def test_task_type_first_match_wins(analyzer):
    assert analyzer.analyze_task("Add a fix for the login crash").task_type == TaskType.FEATURE
    assert analyzer.analyze_task("Refactor the payment module").task_type == TaskType.REFACTOR
    assert analyzer.analyze_task("Optimize slow pages").task_type == TaskType.PERFORMANCE


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Refactor the authentication architecture", TaskComplexity.COMPLEX),
        ("Implement a search endpoint", TaskComplexity.MODERATE),
        ("Rename a variable", TaskComplexity.SIMPLE),
        ("Update 12 files", TaskComplexity.MODERATE),
        ("x " * 300, TaskComplexity.MODERATE),
        ("", TaskComplexity.SIMPLE),
    ],
)
def test_complexity(analyzer, text, expected):
    assert analyzer.analyze_complexity(text) == expected


@pytest.mark.parametrize(
    "text,keyword,expected",
    [
        ("add ai search", "ai", True),
        ("maintain the service", "ai", False),
        ("decide later", "ci", False),
        ("set up ci", "ci", True),
        ("rapid prototyping", "api", False),
        ("testing the parser", "test", True),
        ("contest results", "test", False),
        ("use next.js", "next.js", True),
        ("show the author name", "auth", False),
        ("list blog authors", "auth", False),
        ("check authorization headers", "auth", True),
        ("oauth login", "auth", False),
        ("formatting only", "form", False),
        ("add a testimonials section", "test", False),
    ],
)
def test_keyword_matching_respects_word_starts(text, keyword, expected):
    assert matches_keyword(text, keyword) is expected


def test_author_is_not_an_auth_task(analyzer):
    analysis = analyzer.analyze_task("Show the author name on each blog post")

    assert not analysis.is_security_sensitive
    assert AgentDomain.SECURITY not in analysis.domains
    assert "auth" not in analysis.detected_keywords
