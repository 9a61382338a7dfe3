"""Engine, scheduler and the pure helpers they share"""

from .parser import GraphParser
from .conditions import ConditionEvaluator
from .engine import ExecutionEngine
from .scheduler import WorkflowScheduler, next_occurrence

__all__ = [
    "GraphParser",
    "ConditionEvaluator",
    "ExecutionEngine",
    "WorkflowScheduler",
    "next_occurrence",
]
