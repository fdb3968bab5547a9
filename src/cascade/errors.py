"""Exception hierarchy for cascade."""


class CascadeError(Exception):
    """Base exception for cascade errors."""

    pass


class ConfigError(CascadeError):
    """Configuration file could not be loaded or validated."""

    pass


class TrustStoreError(CascadeError):
    """Persisted trust scores could not be read or written."""

    pass


class UnknownAgentError(CascadeError):
    """An agent id is not present in the catalog."""

    def __init__(self, agent_id: str):
        super().__init__(f"Unknown agent: {agent_id}")
        self.agent_id = agent_id


class SnapshotError(CascadeError):
    """Snapshot creation or restore failed."""

    pass


class GateError(CascadeError):
    """A quality gate could not be executed."""

    pass
