"""Tests for CliAgentBackend"""
import asyncio
import json
from unittest.mock import Mock, patch

import pytest

from cascade.agents.cli_backend import CliAgentBackend
from cascade.agents.protocol import FailureKind, PromptContext
from cascade.config.schema import BackendSettings
from cascade.trust.models import TrustLevel, privileges_for


class FakeProcess:
    """Stands in for asyncio.subprocess.Process"""

    def __init__(self, stdout=b"", stderr=b"", returncode=0, hang=False):
        self._stdout = stdout
        self._stderr = stderr
        self.returncode = returncode
        self._hang = hang
        self._killed = asyncio.Event()
        self.killed = False

    async def communicate(self):
        if self._hang:
            await self._killed.wait()
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True
        self._killed.set()


@pytest.fixture
def context():
    return PromptContext(
        task_id="t1",
        task_description="Fix typo in README",
        agent_id="technical-writer",
        step=1,
        total_steps=2,
        trust_level=TrustLevel.L2_GUIDED,
        privileges=privileges_for(TrustLevel.L2_GUIDED),
        previous_context="earlier notes",
        affected_files=["README.md"],
    )


@pytest.fixture
def backend():
    return CliAgentBackend(BackendSettings(command="agent-cli", args=["--print"], model="sonnet"))


def test_build_command(backend, catalog, context):
    cmd = backend.build_command(catalog.require("technical-writer"), context)

    assert cmd[1:4] == ["--print", "--model", "sonnet"]
    prompt = cmd[-1]
    assert "Fix typo in README" in prompt
    assert "README.md" in prompt
    assert "earlier notes" in prompt
    assert "L2_GUIDED" in prompt


def test_parse_json_report(backend):
    report = {"success": True, "quality_score": 92, "modified_files": ["README.md"], "context_for_next": "done"}
    stdout = json.dumps({"type": "result", "result": "Fixed it.\n" + json.dumps(report)})

    outcome = backend.parse_output(stdout, "", 0)

    assert outcome.success
    assert outcome.quality_score == 92
    assert outcome.modified_files == ("README.md",)
    assert outcome.context_for_next == "done"


def test_parse_plain_text_uses_defaults(backend):
    outcome = backend.parse_output("All done, nothing else to say.", "", 0)

    assert outcome.success
    assert outcome.quality_score == 80.0
    assert outcome.context_for_next == "All done, nothing else to say."


def test_parse_reported_failure(backend):
    report = {"success": False, "error": "tests broke", "security_issue": True}
    outcome = backend.parse_output("Tried.\n" + json.dumps(report), "", 0)

    assert not outcome.success
    assert outcome.kind == FailureKind.TASK_FAILED
    assert outcome.message == "tests broke"
    assert outcome.quality_score == 30.0
    assert outcome.is_security_issue


def test_parse_nonzero_exit(backend):
    outcome = backend.parse_output("", "rate limited", 2)

    assert outcome.kind == FailureKind.BACKEND_ERROR
    assert outcome.message == "rate limited"


def test_parse_cli_error_flag(backend):
    outcome = backend.parse_output(json.dumps({"is_error": True, "result": "bad key"}), "", 0)

    assert outcome.kind == FailureKind.BACKEND_ERROR
    assert outcome.message == "bad key"


def test_quality_is_clamped(backend):
    outcome = backend.parse_output(json.dumps({"success": True, "quality_score": 250}), "", 0)
    assert outcome.quality_score == 100.0


@pytest.mark.asyncio
async def test_execute_runs_subprocess(backend, catalog, context):
    proc = FakeProcess(stdout=b'{"result": "ok\\n{\\"success\\": true, \\"quality_score\\": 88}"}')
    with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
        outcome = await backend.execute(catalog.require("technical-writer"), context)

    assert outcome.success
    assert outcome.quality_score == 88
    assert mock_exec.call_args.kwargs["cwd"] == "."


@pytest.mark.asyncio
async def test_execute_aborted_before_start(backend, catalog, context):
    signal = asyncio.Event()
    signal.set()
    with patch("asyncio.create_subprocess_exec") as mock_exec:
        outcome = await backend.execute(catalog.require("technical-writer"), context, signal)

    assert outcome.kind == FailureKind.ABORTED
    mock_exec.assert_not_called()


@pytest.mark.asyncio
async def test_execute_abort_kills_process(backend, catalog, context):
    proc = FakeProcess(hang=True)
    signal = asyncio.Event()
    with patch("asyncio.create_subprocess_exec", return_value=proc):
        task = asyncio.ensure_future(backend.execute(catalog.require("technical-writer"), context, signal))
        await asyncio.sleep(0.01)
        signal.set()
        outcome = await task

    assert outcome.kind == FailureKind.ABORTED
    assert proc.killed


@pytest.mark.asyncio
async def test_execute_timeout(catalog, context):
    backend = CliAgentBackend(BackendSettings(command="agent-cli", timeout_seconds=0.01))
    proc = FakeProcess(hang=True)
    with patch("asyncio.create_subprocess_exec", return_value=proc):
        outcome = await backend.execute(catalog.require("technical-writer"), context)

    assert outcome.kind == FailureKind.TIMEOUT
    assert proc.killed


@pytest.mark.asyncio
async def test_execute_missing_cli(catalog, context):
    backend = CliAgentBackend(BackendSettings(command="definitely-not-an-agent-cli"))
    with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError):
        outcome = await backend.execute(catalog.require("technical-writer"), context)

    assert outcome.kind == FailureKind.BACKEND_ERROR
    assert "definitely-not-an-agent-cli" in outcome.message


def test_is_available():
    backend = CliAgentBackend(BackendSettings(command="agent-cli"))
    with patch("shutil.which", Mock(return_value=None)):
        assert backend.is_available() is False
