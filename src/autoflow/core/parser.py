"""
Workflow graph parser

Converts the editor's JSON (or YAML) graph payload into a
:class:`WorkflowGraph` and back.
"""
import json
import logging
from typing import Any, Dict, List
from uuid import uuid4

import yaml
from jsonschema import Draft7Validator

from ..exceptions import GraphValidationError, UnknownNodeTypeError
from ..models.workflow import Edge, Node, NodeType, WorkflowGraph


logger = logging.getLogger(__name__)


GRAPH_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["nodes"],
    "properties": {
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "type"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "type": {"type": "string"},
                    "position": {
                        "type": ["object", "null"],
                        "properties": {
                            "x": {"type": "number"},
                            "y": {"type": "number"},
                        },
                    },
                    "data": {
                        "type": "object",
                        "properties": {
                            "label": {"type": "string"},
                            "config": {"type": ["object", "null"]},
                        },
                    },
                },
            },
        },
        "edges": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["source", "target"],
                "properties": {
                    "id": {"type": "string"},
                    "source": {"type": "string", "minLength": 1},
                    "target": {"type": "string", "minLength": 1},
                },
            },
        },
    },
}


class GraphParser:
    """Parser for workflow graph definitions"""

    _validator = Draft7Validator(GRAPH_SCHEMA)

    def parse(self, data: str, fmt: str = "json") -> WorkflowGraph:
        """Parse a serialized graph"""
        try:
            if fmt == "json":
                payload = json.loads(data)
            elif fmt in ("yaml", "yml"):
                payload = yaml.safe_load(data)
            else:
                raise GraphValidationError(f"Unsupported graph format: {fmt}")
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise GraphValidationError(f"Could not decode {fmt} graph: {e}") from e

        if not isinstance(payload, dict):
            raise GraphValidationError("Graph payload must be an object")
        return self.parse_dict(payload)

    def parse_file(self, path: str) -> WorkflowGraph:
        fmt = "yaml" if path.endswith((".yaml", ".yml")) else "json"
        with open(path, "r", encoding="utf-8") as f:
            return self.parse(f.read(), fmt=fmt)

    def parse_dict(self, payload: Dict[str, Any]) -> WorkflowGraph:
        """Build a graph from an already decoded payload"""
        for wrapper in ("workflow", "graph", "graph_data"):
            if wrapper in payload and isinstance(payload[wrapper], dict):
                payload = payload[wrapper]
                break

        errors = self.validate_payload(payload)
        if errors:
            raise GraphValidationError("; ".join(errors))

        nodes = [self._parse_node(raw) for raw in payload["nodes"]]
        edges = [self._parse_edge(raw) for raw in payload.get("edges", [])]
        graph = WorkflowGraph(nodes=tuple(nodes), edges=tuple(edges))

        self._validate_graph(graph)
        return graph

    def validate_payload(self, payload: Dict[str, Any]) -> List[str]:
        """JSON-schema validation of the raw payload"""
        errors = []
        for error in sorted(self._validator.iter_errors(payload), key=lambda e: list(e.path)):
            location = "/".join(str(p) for p in error.path) or "<root>"
            errors.append(f"{location}: {error.message}")
        return errors

    def _parse_node(self, raw: Dict[str, Any]) -> Node:
        try:
            node_type = NodeType(raw["type"])
        except ValueError:
            raise UnknownNodeTypeError(raw["id"], raw["type"])

        data = raw.get("data") or {}
        return Node(
            id=raw["id"],
            type=node_type,
            label=data.get("label") or raw.get("label") or "",
            config=dict(data.get("config") or raw.get("config") or {}),
            position=raw.get("position"),
        )

    def _parse_edge(self, raw: Dict[str, Any]) -> Edge:
        return Edge(
            id=raw.get("id") or str(uuid4()),
            source=raw["source"],
            target=raw["target"],
        )

    def _validate_graph(self, graph: WorkflowGraph) -> None:
        graph.check()

    def to_dict(self, graph: WorkflowGraph) -> Dict[str, Any]:
        return {
            "nodes": [self._node_to_dict(node) for node in graph.nodes],
            "edges": [{"id": e.id, "source": e.source, "target": e.target} for e in graph.edges],
        }

    def serialize(self, graph: WorkflowGraph, fmt: str = "json") -> str:
        data = self.to_dict(graph)
        if fmt == "json":
            return json.dumps(data, ensure_ascii=False, indent=2)
        if fmt in ("yaml", "yml"):
            return yaml.safe_dump(data, allow_unicode=True, sort_keys=False)
        raise GraphValidationError(f"Unsupported serialisation format: {fmt}")

    def _node_to_dict(self, node: Node) -> Dict[str, Any]:
        payload = {
            "id": node.id,
            "type": node.type.value,
            "data": {"label": node.label, "config": dict(node.config)},
        }
        if node.position is not None:
            payload["position"] = node.position
        return payload
