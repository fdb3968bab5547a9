"""Tests for CommandGateRunner"""
import pytest

from cascade.agents.catalog import AgentDomain
from cascade.config.schema import GateSpec
from cascade.errors import GateError
from cascade.orchestration.collaborators import GateContext
from cascade.safety.gates import CommandGateRunner


@pytest.fixture
def context(tmp_path):
    return GateContext(
        task_id="abc123",
        task_description="Fix typo",
        working_dir=str(tmp_path),
        files=["README.md", "docs/my guide.md"],
    )


@pytest.mark.asyncio
async def test_passing_gate(context):
    runner = CommandGateRunner([GateSpec(name="ok", command="true")])

    result = await runner.run_post_gates(context, AgentDomain.BACKEND)

    assert result.passed
    assert result.checks[0].message == "ok passed"


@pytest.mark.asyncio
async def test_failing_gate_collects_output(context):
    spec = GateSpec(name="lint", command="sh -c 'echo E501 line too long; exit 1'")
    runner = CommandGateRunner([spec])

    result = await runner.run_post_gates(context, AgentDomain.BACKEND)

    assert not result.passed
    assert result.blocking_issues == ["lint: E501 line too long"]
    assert result.domain == AgentDomain.BACKEND


@pytest.mark.asyncio
async def test_advisory_gate_failure_does_not_block(context):
    runner = CommandGateRunner([GateSpec(name="style", command="false", blocking=False)])

    result = await runner.run_post_gates(context, AgentDomain.BACKEND)

    assert result.passed
    assert not result.checks[0].passed


@pytest.mark.asyncio
async def test_missing_command(context):
    runner = CommandGateRunner([GateSpec(name="ghost", command="no-such-gate-binary --check")])

    result = await runner.run_pre_gates(context, AgentDomain.BACKEND)

    assert not result.passed
    assert result.blocking_issues == ["Command not found: no-such-gate-binary"]


@pytest.mark.asyncio
async def test_timeout(context):
    runner = CommandGateRunner([GateSpec(name="slow", command="sleep 5", timeout_seconds=0.1)])

    result = await runner.run_post_gates(context, AgentDomain.BACKEND)

    assert not result.passed
    assert "timed out" in result.blocking_issues[0]


@pytest.mark.asyncio
async def test_no_gates_means_pass(context):
    result = await CommandGateRunner([]).run_pre_gates(context, AgentDomain.FRONTEND)
    assert result.passed
    assert result.checks == []


def test_gates_filtered_by_timing_and_domain():
    specs = [
        GateSpec(name="types", command="mypy .", timing="pre", domains=["backend"]),
        GateSpec(name="tests", command="pytest"),
        GateSpec(name="ui", command="npm test", domains=["frontend"]),
    ]
    runner = CommandGateRunner(specs)

    assert [s.name for s in runner.gates_for("pre", AgentDomain.BACKEND)] == ["types"]
    assert [s.name for s in runner.gates_for("pre", AgentDomain.FRONTEND)] == []
    assert [s.name for s in runner.gates_for("post", AgentDomain.FRONTEND)] == ["tests", "ui"]
    assert [s.name for s in runner.gates_for("post", AgentDomain.DATABASE)] == ["tests"]


def test_placeholders_are_quoted(context):
    spec = GateSpec(name="lint", command="ruff check {files} --task {task_id}")

    cmd = CommandGateRunner([spec]).build_command(spec, context)

    assert cmd == ["ruff", "check", "README.md", "docs/my guide.md", "--task", "abc123"]


@pytest.mark.asyncio
async def test_unparseable_command_raises(context):
    runner = CommandGateRunner([GateSpec(name="broken", command="sh -c 'echo")])

    with pytest.raises(GateError):
        await runner.run_post_gates(context, AgentDomain.BACKEND)
