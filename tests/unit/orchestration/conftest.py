"""Fakes for the orchestrator's collaborators"""
import asyncio

import pytest

from cascade.agents.protocol import AgentBackend, AgentSuccess
from cascade.orchestration.collaborators import (
    GateCheck,
    GateResult,
    QualityGateRunner,
    SnapshotService,
)


class FakeBackend(AgentBackend):
    """Returns scripted outcomes and records every call.

    outcomes maps agent id to an AgentSuccess, an AgentFailure or an
    exception instance to raise. Unlisted agents succeed.
    """

    def __init__(self, outcomes=None, delay=0.0):
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls = []
        self.running = 0
        self.max_running = 0
        self.finished = []

    async def execute(self, agent, context, abort_signal=None):
        self.calls.append((agent.id, context))
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.outcomes.get(agent.id)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome or AgentSuccess(
                quality_score=90.0,
                modified_files=(f"{agent.id}.txt",),
                context_for_next=f"notes from {agent.id}",
            )
        finally:
            self.running -= 1
            self.finished.append(agent.id)

    @property
    def called_ids(self):
        return [agent_id for agent_id, _ in self.calls]


class FakeSnapshots(SnapshotService):
    def __init__(self, fail_restore=False):
        self.created = []
        self.restored = []
        self.fail_restore = fail_restore

    async def create(self, files, label, metadata):
        self.created.append((files, label, metadata))
        return f"snap-{len(self.created)}"

    async def restore(self, snapshot_id):
        self.restored.append(snapshot_id)
        if self.fail_restore:
            raise OSError("disk full")


class FakeGates(QualityGateRunner):
    def __init__(self, pre_pass=True, post_pass=True, post_error=None):
        self.pre_pass = pre_pass
        self.post_pass = post_pass
        self.post_error = post_error
        self.pre_domains = []
        self.post_domains = []

    async def run_pre_gates(self, context, domain):
        self.pre_domains.append(domain)
        return self._result("lint", self.pre_pass, domain)

    async def run_post_gates(self, context, domain):
        self.post_domains.append(domain)
        if self.post_error is not None:
            raise self.post_error
        return self._result("tests", self.post_pass, domain)

    def _result(self, name, passed, domain):
        check = GateCheck(
            gate_id=name,
            name=name,
            passed=passed,
            message="" if passed else f"{name} broken",
        )
        return GateResult.from_checks([check], domain)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def snapshots():
    return FakeSnapshots()


@pytest.fixture
def gates():
    return FakeGates()
