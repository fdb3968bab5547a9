"""Trust levels, privileges and per-agent trust metrics."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from cascade.agents.catalog import AgentDomain

# Executions considered "recent" when deciding demotions
RECENT_WINDOW = 5
# Ordinary failures in a row that quarantine an agent
QUARANTINE_CONSECUTIVE_FAILURES = 3
# Executions before an agent leaves probation and is judged on the ladder
PROBATION_EXECUTIONS = 5
MAX_EXECUTION_HISTORY = 100
MAX_LEVEL_HISTORY = 50


class TrustLevel(IntEnum):
    """Ordered autonomy levels; compare with <, <=, max(), min()."""

    L0_QUARANTINE = 0
    L1_SUPERVISED = 1
    L2_GUIDED = 2
    L3_TRUSTED = 3
    L4_AUTONOMOUS = 4

    @property
    def label(self) -> str:
        return self.name.split("_", 1)[1].lower()

    @classmethod
    def parse(cls, value: "str | int | TrustLevel") -> "TrustLevel":
        """Parse a level from an enum, int, full name, short name or label.

        Accepts e.g. 2, "2", "L2", "L2_GUIDED", "guided".
        """
        if isinstance(value, TrustLevel):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip().upper()
        if text.isdigit():
            return cls(int(text))
        for level in cls:
            if text in (level.name, level.name.split("_", 1)[0], level.name.split("_", 1)[1]):
                return level
        raise ValueError(f"Unknown trust level: {value!r}")


DOMAIN_INITIAL_LEVELS: dict[AgentDomain, TrustLevel] = {
    AgentDomain.SECURITY: TrustLevel.L1_SUPERVISED,
    AgentDomain.TESTING: TrustLevel.L3_TRUSTED,
}
DEFAULT_INITIAL_LEVEL = TrustLevel.L2_GUIDED


def initial_level_for(domain: AgentDomain) -> TrustLevel:
    """Starting level for an agent with no history."""
    return DOMAIN_INITIAL_LEVELS.get(domain, DEFAULT_INITIAL_LEVEL)


@dataclass(frozen=True)
class LevelThreshold:
    """Requirements an agent must meet to hold a level on the ladder."""

    min_executions: int
    min_success_rate: float
    min_quality: float
    max_recent_failures: int


LEVEL_THRESHOLDS: dict[TrustLevel, LevelThreshold] = {
    TrustLevel.L4_AUTONOMOUS: LevelThreshold(50, 0.95, 90.0, 0),
    TrustLevel.L3_TRUSTED: LevelThreshold(20, 0.85, 80.0, 0),
    TrustLevel.L2_GUIDED: LevelThreshold(5, 0.70, 60.0, 2),
}


class SupervisionMode(str, Enum):
    """How closely the backend should watch an agent's work."""

    PARANOID = "paranoid"
    ENHANCED = "enhanced"
    FULL = "full"
    STANDARD = "standard"
    SAMPLING = "sampling"


@dataclass(frozen=True)
class PrivilegeSet:
    """What an agent at a given trust level is allowed to do."""

    level: TrustLevel
    allowed_operations: frozenset[str]
    max_files_per_operation: int
    max_retries: int
    skip_explain_first: bool
    auto_approve_changes: bool
    max_parallel_agents: int
    supervision_mode: SupervisionMode

    def allows(self, operation: str) -> bool:
        return operation in self.allowed_operations

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.name,
            "allowed_operations": sorted(self.allowed_operations),
            "max_files_per_operation": self.max_files_per_operation,
            "max_retries": self.max_retries,
            "skip_explain_first": self.skip_explain_first,
            "auto_approve_changes": self.auto_approve_changes,
            "max_parallel_agents": self.max_parallel_agents,
            "supervision_mode": self.supervision_mode.value,
        }


_PRIVILEGES: dict[TrustLevel, PrivilegeSet] = {
    TrustLevel.L0_QUARANTINE: PrivilegeSet(
        level=TrustLevel.L0_QUARANTINE,
        allowed_operations=frozenset({"read"}),
        max_files_per_operation=0,
        max_retries=0,
        skip_explain_first=False,
        auto_approve_changes=False,
        max_parallel_agents=0,
        supervision_mode=SupervisionMode.PARANOID,
    ),
    TrustLevel.L1_SUPERVISED: PrivilegeSet(
        level=TrustLevel.L1_SUPERVISED,
        allowed_operations=frozenset({"read", "write"}),
        max_files_per_operation=5,
        max_retries=1,
        skip_explain_first=False,
        auto_approve_changes=False,
        max_parallel_agents=1,
        supervision_mode=SupervisionMode.ENHANCED,
    ),
    TrustLevel.L2_GUIDED: PrivilegeSet(
        level=TrustLevel.L2_GUIDED,
        allowed_operations=frozenset({"read", "write"}),
        max_files_per_operation=10,
        max_retries=2,
        skip_explain_first=False,
        auto_approve_changes=False,
        max_parallel_agents=2,
        supervision_mode=SupervisionMode.FULL,
    ),
    TrustLevel.L3_TRUSTED: PrivilegeSet(
        level=TrustLevel.L3_TRUSTED,
        allowed_operations=frozenset({"read", "write", "execute"}),
        max_files_per_operation=20,
        max_retries=3,
        skip_explain_first=True,
        auto_approve_changes=False,
        max_parallel_agents=3,
        supervision_mode=SupervisionMode.STANDARD,
    ),
    TrustLevel.L4_AUTONOMOUS: PrivilegeSet(
        level=TrustLevel.L4_AUTONOMOUS,
        allowed_operations=frozenset({"read", "write", "execute", "delete"}),
        max_files_per_operation=50,
        max_retries=3,
        skip_explain_first=True,
        auto_approve_changes=True,
        max_parallel_agents=5,
        supervision_mode=SupervisionMode.SAMPLING,
    ),
}


def privileges_for(level: TrustLevel) -> PrivilegeSet:
    """Privilege set for a trust level."""
    return _PRIVILEGES[TrustLevel(level)]


@dataclass(frozen=True)
class ExecutionOutcome:
    """What the engine needs to know about one finished agent execution."""

    success: bool
    quality_score: float  # 0-100
    is_critical_failure: bool = False
    is_security_issue: bool = False
    error_details: str | None = None
    duration_ms: int = 0
    task_id: str | None = None


@dataclass
class ManualOverride:
    """Operator-set trust level"""
    level: TrustLevel
    reason: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "level": int(self.level),
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ManualOverride":
        return cls(
            level=TrustLevel(data["level"]),
            reason=data["reason"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class ExecutionRecord:
    """One entry of an agent's execution history"""
    timestamp: datetime
    success: bool
    quality_score: float
    duration_ms: int = 0
    task_id: str | None = None
    error: str | None = None
    critical: bool = False
    security: bool = False

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "quality_score": self.quality_score,
            "duration_ms": self.duration_ms,
            "task_id": self.task_id,
            "error": self.error,
            "critical": self.critical,
            "security": self.security,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionRecord":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            success=data["success"],
            quality_score=data.get("quality_score", 0.0),
            duration_ms=data.get("duration_ms", 0),
            task_id=data.get("task_id"),
            error=data.get("error"),
            critical=data.get("critical", False),
            security=data.get("security", False),
        )


@dataclass
class LevelChange:
    """Audit entry written whenever an agent's computed level changes"""
    timestamp: datetime
    level: TrustLevel
    reason: str

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": int(self.level),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LevelChange":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            level=TrustLevel(data["level"]),
            reason=data["reason"],
        )


@dataclass
class TrustMetrics:
    """Execution history for one agent.

    The trust level is not stored here. TrustCascadeEngine recomputes it
    from these counters on every call.
    """
    agent_id: str
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    consecutive_failures: int = 0
    rolling_quality_score: float = 0.0
    last_critical_failure_at: datetime | None = None
    last_security_issue_at: datetime | None = None
    manual_override: ManualOverride | None = None
    recent_results: list[bool] = field(default_factory=list)  # newest last
    execution_history: list[ExecutionRecord] = field(default_factory=list)
    level_history: list[LevelChange] = field(default_factory=list)
    last_execution_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def success_rate(self) -> float:
        if self.total_executions == 0:
            return 0.0
        return self.successful_executions / self.total_executions

    @property
    def recent_failures(self) -> int:
        return sum(1 for ok in self.recent_results if not ok)

    @property
    def has_sticky_quarantine(self) -> bool:
        return self.last_critical_failure_at is not None or self.last_security_issue_at is not None

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization"""
        return {
            "agent_id": self.agent_id,
            "total_executions": self.total_executions,
            "successful_executions": self.successful_executions,
            "failed_executions": self.failed_executions,
            "consecutive_failures": self.consecutive_failures,
            "rolling_quality_score": self.rolling_quality_score,
            "last_critical_failure_at": _iso(self.last_critical_failure_at),
            "last_security_issue_at": _iso(self.last_security_issue_at),
            "manual_override": self.manual_override.to_dict() if self.manual_override else None,
            "recent_results": list(self.recent_results),
            "execution_history": [r.to_dict() for r in self.execution_history],
            "level_history": [c.to_dict() for c in self.level_history],
            "last_execution_at": _iso(self.last_execution_at),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrustMetrics":
        """Load from dict"""
        override = data.get("manual_override")
        return cls(
            agent_id=data["agent_id"],
            total_executions=data.get("total_executions", 0),
            successful_executions=data.get("successful_executions", 0),
            failed_executions=data.get("failed_executions", 0),
            consecutive_failures=data.get("consecutive_failures", 0),
            rolling_quality_score=data.get("rolling_quality_score", 0.0),
            last_critical_failure_at=_parse_dt(data.get("last_critical_failure_at")),
            last_security_issue_at=_parse_dt(data.get("last_security_issue_at")),
            manual_override=ManualOverride.from_dict(override) if override else None,
            recent_results=list(data.get("recent_results", [])),
            execution_history=[
                ExecutionRecord.from_dict(r) for r in data.get("execution_history", [])
            ],
            level_history=[LevelChange.from_dict(c) for c in data.get("level_history", [])],
            last_execution_at=_parse_dt(data.get("last_execution_at")),
            created_at=_parse_dt(data.get("created_at")) or datetime.now(),
        )


@dataclass
class TrustSummary:
    """Aggregate view over every tracked agent."""

    total_agents: int
    by_level: dict[TrustLevel, int]
    quarantined: list[str]
    average_quality: float
    recent_changes: list[tuple[str, LevelChange]]

    def to_dict(self) -> dict:
        return {
            "total_agents": self.total_agents,
            "by_level": {level.name: count for level, count in self.by_level.items()},
            "quarantined": list(self.quarantined),
            "average_quality": self.average_quality,
            "recent_changes": [
                {"agent_id": agent_id, **change.to_dict()}
                for agent_id, change in self.recent_changes
            ],
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
