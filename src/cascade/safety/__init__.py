"""Default snapshot and quality gate collaborators."""

from cascade.safety.gates import CommandGateRunner
from cascade.safety.snapshot import FileSnapshotService, SnapshotManifest

__all__ = ["CommandGateRunner", "FileSnapshotService", "SnapshotManifest"]
