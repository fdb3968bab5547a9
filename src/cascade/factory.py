"""Wiring: build a fully configured orchestrator for a project directory."""

from cascade.agents.catalog import AgentCatalog, default_catalog
from cascade.agents.cli_backend import CliAgentBackend
from cascade.agents.protocol import AgentBackend
from cascade.config.manager import ConfigManager
from cascade.orchestration.collaborators import ApprovalCallback, PhaseCallback
from cascade.orchestration.orchestrator import CascadeOrchestrator
from cascade.safety.gates import CommandGateRunner
from cascade.safety.snapshot import FileSnapshotService
from cascade.trust.engine import TrustCascadeEngine
from cascade.trust.store import TrustStore


def build_trust_engine(manager: ConfigManager, catalog: AgentCatalog | None = None) -> TrustCascadeEngine:
    """Trust engine backed by the project's trust store."""
    config = manager.config
    store = TrustStore.for_project(manager.project_dir, config.trust.store_dir)
    return TrustCascadeEngine(store=store, catalog=catalog or default_catalog(), max_history=config.trust.max_history)


def build_orchestrator(
    manager: ConfigManager,
    backend: AgentBackend | None = None,
    catalog: AgentCatalog | None = None,
    approval_callback: ApprovalCallback | None = None,
    phase_callback: PhaseCallback | None = None,
) -> CascadeOrchestrator:
    """Create an orchestrator with the default collaborators for a project."""
    config = manager.config
    catalog = catalog or default_catalog()
    working_dir = str(manager.project_dir)

    snapshots = FileSnapshotService(
        root=manager.project_dir,
        snapshot_dir=manager.resolve_path(config.snapshots.directory),
        keep=config.snapshots.keep,
        protected=[manager.resolve_path(config.trust.store_dir)],
        exclude_patterns=config.snapshots.exclude_patterns,
        max_file_size=config.snapshots.max_file_size,
    )
    gates = CommandGateRunner(config.gates.checks, working_dir=working_dir) if config.gates.checks else None

    return CascadeOrchestrator(
        backend=backend or CliAgentBackend(config.backend, working_dir=working_dir),
        config=config.orchestrator,
        catalog=catalog,
        trust=build_trust_engine(manager, catalog),
        snapshots=snapshots,
        gates=gates,
        approval_callback=approval_callback,
        phase_callback=phase_callback,
        working_dir=working_dir,
    )
