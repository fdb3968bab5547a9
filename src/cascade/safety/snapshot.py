"""File-copy snapshots for rolling back agent changes"""
import fnmatch
import json
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from cascade.config.schema import DEFAULT_EXCLUDE_PATTERNS, DEFAULT_MAX_FILE_SIZE
from cascade.errors import SnapshotError
from cascade.orchestration.collaborators import SnapshotService

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


@dataclass
class SnapshotManifest:
    """What a snapshot captured"""
    id: str
    label: str
    created_at: datetime
    files: dict[str, bool]  # project-relative path -> existed at snapshot time
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization"""
        return {
            "id": self.id,
            "label": self.label,
            "created_at": self.created_at.isoformat(),
            "files": self.files,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotManifest":
        """Load from dict"""
        return cls(
            id=data["id"],
            label=data["label"],
            created_at=datetime.fromisoformat(data["created_at"]),
            files=data["files"],
            metadata=data.get("metadata", {}),
        )

    @classmethod
    def from_file(cls, path: Path) -> "SnapshotManifest":
        """Load manifest from file"""
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


class FileSnapshotService(SnapshotService):
    """Copies files under the project root into a snapshot directory.

    Restore writes every captured file back and deletes files that did not
    exist when the snapshot was taken.

    Files under ``protected`` directories (the snapshot directory itself and
    cascade's own state, such as the trust store) are never captured, so a
    rollback cannot rewind them. Paths matching ``exclude_patterns`` and files
    larger than ``max_file_size`` bytes are skipped as well.
    """

    def __init__(
        self,
        root: Path,
        snapshot_dir: Path,
        keep: int = 20,
        protected: list[Path] | None = None,
        exclude_patterns: list[str] | None = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self.root = Path(root).resolve()
        self.snapshot_dir = Path(snapshot_dir)
        self.keep = keep
        self.protected = [self.snapshot_dir.resolve()] + [Path(p).resolve() for p in protected or []]
        self.exclude_patterns = DEFAULT_EXCLUDE_PATTERNS if exclude_patterns is None else exclude_patterns
        self.max_file_size = max_file_size

    async def create(self, files: list[str], label: str, metadata: dict[str, Any]) -> str:
        snapshot_id = f"snap-{datetime.now():%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"
        target_dir = self.snapshot_dir / snapshot_id
        files_dir = target_dir / "files"
        captured: dict[str, bool] = {}

        try:
            files_dir.mkdir(parents=True, exist_ok=True)
            for rel in self._expand(files):
                source = self.root / rel
                if source.is_file():
                    destination = files_dir / rel
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(source, destination)
                    captured[rel] = True
                else:
                    captured[rel] = False

            manifest = SnapshotManifest(
                id=snapshot_id,
                label=label,
                created_at=datetime.now(),
                files=captured,
                metadata=metadata,
            )
            with open(target_dir / MANIFEST_NAME, "w") as f:
                json.dump(manifest.to_dict(), f, indent=2)
        except OSError as e:
            raise SnapshotError(f"Cannot create snapshot {snapshot_id}: {e}") from e

        logger.info("Snapshot %s captured %s files (%s)", snapshot_id, len(captured), label)
        self._prune()
        return snapshot_id

    async def restore(self, snapshot_id: str) -> None:
        manifest = self.get(snapshot_id)
        if manifest is None:
            raise SnapshotError(f"Snapshot not found: {snapshot_id}")

        files_dir = self.snapshot_dir / snapshot_id / "files"
        try:
            for rel, existed in manifest.files.items():
                target = self.root / rel
                if existed:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(files_dir / rel, target)
                elif target.is_file():
                    target.unlink()
        except OSError as e:
            raise SnapshotError(f"Cannot restore snapshot {snapshot_id}: {e}") from e
        logger.info("Restored snapshot %s", snapshot_id)

    def get(self, snapshot_id: str) -> SnapshotManifest | None:
        """Load a snapshot manifest by id"""
        path = self.snapshot_dir / snapshot_id / MANIFEST_NAME
        if not path.exists():
            return None
        return SnapshotManifest.from_file(path)

    def list_snapshots(self) -> list[SnapshotManifest]:
        """All snapshots, oldest first"""
        if not self.snapshot_dir.exists():
            return []
        manifests = [
            SnapshotManifest.from_file(path)
            for path in self.snapshot_dir.glob(f"*/{MANIFEST_NAME}")
        ]
        return sorted(manifests, key=lambda m: m.created_at)

    def delete(self, snapshot_id: str) -> bool:
        path = self.snapshot_dir / snapshot_id
        if not path.exists():
            return False
        shutil.rmtree(path)
        return True

    def _expand(self, files: list[str]) -> list[str]:
        """Project-relative file paths; directories expand to the files inside"""
        expanded: list[str] = []
        for name in files:
            path = Path(name)
            absolute = (path if path.is_absolute() else self.root / path).resolve()
            try:
                rel = absolute.relative_to(self.root)
            except ValueError:
                raise SnapshotError(f"File outside project root: {name}") from None

            if absolute.is_dir():
                candidates = sorted(p.relative_to(self.root) for p in absolute.rglob("*") if p.is_file())
            else:
                candidates = [rel]
            for candidate in candidates:
                key = candidate.as_posix()
                if key not in expanded and not self._skip(candidate):
                    expanded.append(key)
        return expanded

    def _skip(self, rel: Path) -> bool:
        """Whether a project-relative file is left out of snapshots"""
        path = self.root / rel
        if any(path == p or p in path.parents for p in self.protected):
            return True
        if self._excluded(rel.as_posix()):
            logger.debug("Skipping excluded file %s", rel)
            return True
        if path.is_file() and path.stat().st_size > self.max_file_size:
            logger.warning("Skipping %s: larger than %s bytes", rel, self.max_file_size)
            return True
        return False

    def _excluded(self, rel: str) -> bool:
        parts = rel.split("/")
        for pattern in self.exclude_patterns:
            if pattern.endswith("/**"):
                # Directory pattern matches at any depth
                prefix = pattern[:-3]
                if any(fnmatch.fnmatchcase("/".join(parts[: i + 1]), prefix) for i in range(len(parts) - 1)):
                    return True
                if any(fnmatch.fnmatchcase(part, prefix) for part in parts[:-1]):
                    return True
            elif fnmatch.fnmatchcase(rel, pattern) or fnmatch.fnmatchcase(parts[-1], pattern):
                return True
        return False

    def _prune(self) -> None:
        snapshots = self.list_snapshots()
        for manifest in snapshots[: max(0, len(snapshots) - self.keep)]:
            logger.debug("Pruning old snapshot %s", manifest.id)
            self.delete(manifest.id)
