"""Graph, execution and schedule models"""

from .workflow import Node, Edge, NodeType, WorkflowGraph, find_trigger_node, outgoing_edges
from .node_config import (
    TriggerConfig, DataSourceConfig, ActionConfig, LogicConfig,
    TransformConfig, AIConfig, NodeConfig, parse_node_config
)
from .execution import NodeResult, RunContext, RunResult, RunStatus, RunEventType
from .schedule import Recurrence, ScheduleDescriptor, ScheduleState, interval_for

__all__ = [
    "Node",
    "Edge",
    "NodeType",
    "WorkflowGraph",
    "find_trigger_node",
    "outgoing_edges",
    "TriggerConfig",
    "DataSourceConfig",
    "ActionConfig",
    "LogicConfig",
    "TransformConfig",
    "AIConfig",
    "NodeConfig",
    "parse_node_config",
    "NodeResult",
    "RunContext",
    "RunResult",
    "RunStatus",
    "RunEventType",
    "Recurrence",
    "ScheduleDescriptor",
    "ScheduleState",
    "interval_for",
]
