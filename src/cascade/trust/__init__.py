"""Trust cascade: per-agent history, trust levels and privileges."""

from cascade.trust.engine import TrustCascadeEngine
from cascade.trust.models import (
    ExecutionOutcome,
    PrivilegeSet,
    TrustLevel,
    TrustMetrics,
    privileges_for,
)
from cascade.trust.store import TrustStore

__all__ = [
    "ExecutionOutcome",
    "PrivilegeSet",
    "TrustCascadeEngine",
    "TrustLevel",
    "TrustMetrics",
    "TrustStore",
    "privileges_for",
]
