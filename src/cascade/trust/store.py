"""Persistence for per-project trust metrics."""
import json
import logging
from datetime import datetime
from pathlib import Path

from cascade.errors import TrustStoreError
from cascade.trust.models import TrustMetrics

logger = logging.getLogger(__name__)

STORE_VERSION = "1.0.0"
STORE_DIRNAME = ".cascade"
STORE_FILENAME = "trust-scores.json"


class TrustStore:
    """Reads and writes the trust metrics of one project.

    The whole record set is read once and rewritten after every mutation.
    Writes are not transactional across processes: two orchestrators
    sharing a working directory can overwrite each other's updates.
    """

    def __init__(self, path: Path | None):
        self.path = path

    @classmethod
    def for_project(cls, working_dir: Path, dirname: str = STORE_DIRNAME) -> "TrustStore":
        """Store located at <working_dir>/<dirname>/trust-scores.json"""
        return cls(Path(working_dir) / dirname / STORE_FILENAME)

    @classmethod
    def in_memory(cls) -> "TrustStore":
        """Store that never touches disk"""
        return cls(None)

    def load(self) -> dict[str, TrustMetrics]:
        """Load all metrics, or an empty mapping if nothing is stored yet"""
        if self.path is None or not self.path.exists():
            return {}

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TrustStoreError(f"Cannot read trust store {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("agents", {}), dict):
            raise TrustStoreError(f"Malformed trust store {self.path}")

        version = data.get("version")
        if version != STORE_VERSION:
            logger.warning("Trust store %s has version %s, expected %s", self.path, version, STORE_VERSION)

        try:
            return {
                agent_id: TrustMetrics.from_dict(record)
                for agent_id, record in data.get("agents", {}).items()
            }
        except (KeyError, TypeError, ValueError) as e:
            raise TrustStoreError(f"Malformed agent record in {self.path}: {e}") from e

    def save(self, metrics: dict[str, TrustMetrics]) -> None:
        """Write all metrics to disk"""
        if self.path is None:
            return

        payload = {
            "version": STORE_VERSION,
            "last_updated": datetime.now().isoformat(),
            "agents": {agent_id: m.to_dict() for agent_id, m in metrics.items()},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".json.tmp")
            with open(tmp_path, "w") as f:
                json.dump(payload, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            raise TrustStoreError(f"Cannot write trust store {self.path}: {e}") from e
