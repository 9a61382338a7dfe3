"""
autoflow - visual automation workflow runtime

Runs trigger-rooted node graphs once or on a recurring schedule.
"""

__version__ = "1.0.0"

from .core import ExecutionEngine, WorkflowScheduler, GraphParser, ConditionEvaluator
from .integrations import ServiceRegistry, ServiceResult, EventBus
from .models import WorkflowGraph, Node, Edge, NodeType, RunResult, ScheduleDescriptor
from .exceptions import WorkflowError

__all__ = [
    "ExecutionEngine",
    "WorkflowScheduler",
    "GraphParser",
    "ConditionEvaluator",
    "ServiceRegistry",
    "ServiceResult",
    "EventBus",
    "WorkflowGraph",
    "Node",
    "Edge",
    "NodeType",
    "RunResult",
    "ScheduleDescriptor",
    "WorkflowError",
]
