"""
Workflow graph model
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ..exceptions import DanglingEdgeError, GraphValidationError, NoTriggerError


class NodeType(Enum):
    """Node kinds"""
    TRIGGER = "trigger"
    DATA_SOURCE = "dataSource"
    LOGIC = "logic"
    TRANSFORM = "transform"
    ACTION = "action"
    AI = "ai"


@dataclass(frozen=True)
class Node:
    """A single workflow step"""
    id: str
    type: NodeType
    label: str = ""
    config: Dict[str, Any] = field(default_factory=dict)
    position: Optional[Dict[str, float]] = None

    @property
    def display_name(self) -> str:
        return self.label or self.id


@dataclass(frozen=True)
class Edge:
    """Directed connection between two nodes"""
    source: str
    target: str
    id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class WorkflowGraph:
    """Immutable snapshot of a workflow's automation logic"""
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()

    def __post_init__(self):
        # Accept lists from callers but always store tuples
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))

    def get_node(self, node_id: str) -> Optional[Node]:
        """Look up a node by id"""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def trigger_nodes(self) -> List[Node]:
        return [node for node in self.nodes if node.type == NodeType.TRIGGER]

    def check(self) -> None:
        """Raise on the first structural problem"""
        node_ids = set()
        for node in self.nodes:
            if node.id in node_ids:
                raise GraphValidationError(f"Duplicate node id '{node.id}'")
            node_ids.add(node.id)

        for edge in self.edges:
            for end in (edge.source, edge.target):
                if end not in node_ids:
                    raise DanglingEdgeError(edge.id, end)
            if edge.source == edge.target:
                raise GraphValidationError(f"Edge '{edge.id}' is a self-loop on '{edge.source}'")


def find_trigger_node(graph: WorkflowGraph) -> Node:
    """Return the first trigger node of the graph"""
    triggers = graph.trigger_nodes()
    if not triggers:
        raise NoTriggerError()
    return triggers[0]


def outgoing_edges(graph: WorkflowGraph, node_id: str) -> List[Edge]:
    """All edges leaving ``node_id`` in the order they were added"""
    return [edge for edge in graph.edges if edge.source == node_id]
