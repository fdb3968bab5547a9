"""Task analysis and agent selection."""

from cascade.selection.analyzer import TaskAnalysis, TaskAnalyzer, TaskComplexity, TaskType
from cascade.selection.selector import AgentSelectionResult, AgentSelector

__all__ = [
    "AgentSelectionResult",
    "AgentSelector",
    "TaskAnalysis",
    "TaskAnalyzer",
    "TaskComplexity",
    "TaskType",
]
