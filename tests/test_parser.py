import json

import pytest

from autoflow.core.parser import GraphParser
from autoflow.exceptions import DanglingEdgeError, GraphValidationError, UnknownNodeTypeError
from autoflow.models.workflow import NodeType


def sample_graph_dict():
    return {
        "workflow": {
            "nodes": [
                {
                    "id": "trigger",
                    "type": "trigger",
                    "position": {"x": 0, "y": 0},
                    "data": {"label": "Every hour", "config": {"triggerType": "schedule", "schedule": "hourly"}},
                },
                {
                    "id": "fetch",
                    "type": "dataSource",
                    "data": {"label": "Fetch weather", "config": {"source": "weather"}},
                },
            ],
            "edges": [
                {"id": "e1", "source": "trigger", "target": "fetch"},
            ],
        }
    }


@pytest.fixture
def parser():
    return GraphParser()


def test_parse_json_workflow(parser):
    graph = parser.parse(json.dumps(sample_graph_dict()))
    assert [n.id for n in graph.nodes] == ["trigger", "fetch"]
    assert graph.nodes[0].type == NodeType.TRIGGER
    assert graph.nodes[0].label == "Every hour"
    assert graph.nodes[1].config == {"source": "weather"}
    assert graph.edges[0].source == "trigger"


def test_parse_yaml_string(parser):
    yaml_content = """
graph:
  nodes:
    - id: start
      type: trigger
    - id: log
      type: action
      config:
        action: log
  edges:
    - source: start
      target: log
"""
    graph = parser.parse(yaml_content, fmt="yaml")
    assert graph.get_node("log").config == {"action": "log"}
    assert graph.edges[0].id


def test_parse_file_detects_yaml(parser, tmp_path):
    path = tmp_path / "flow.yml"
    path.write_text("nodes:\n  - id: start\n    type: trigger\n", encoding="utf-8")
    graph = parser.parse_file(str(path))
    assert graph.nodes[0].id == "start"


def test_unknown_node_type(parser):
    definition = sample_graph_dict()
    definition["workflow"]["nodes"][1]["type"] = "database"
    with pytest.raises(UnknownNodeTypeError) as exc:
        parser.parse_dict(definition)
    assert exc.value.node_type == "database"


def test_dangling_edge(parser):
    definition = sample_graph_dict()
    definition["workflow"]["edges"].append({"id": "e2", "source": "fetch", "target": "ghost"})
    with pytest.raises(DanglingEdgeError) as exc:
        parser.parse_dict(definition)
    assert exc.value.edge_id == "e2"
    assert exc.value.node_id == "ghost"


def test_duplicate_node_ids(parser):
    definition = sample_graph_dict()
    definition["workflow"]["nodes"][1]["id"] = "trigger"
    definition["workflow"]["edges"] = []
    with pytest.raises(GraphValidationError):
        parser.parse_dict(definition)


def test_self_loop(parser):
    definition = sample_graph_dict()
    definition["workflow"]["edges"] = [{"source": "fetch", "target": "fetch"}]
    with pytest.raises(GraphValidationError):
        parser.parse_dict(definition)


def test_schema_errors(parser):
    with pytest.raises(GraphValidationError) as exc:
        parser.parse_dict({"nodes": [{"type": "trigger"}]})
    assert "id" in str(exc.value)

    assert parser.validate_payload({"edges": []})


def test_invalid_json(parser):
    with pytest.raises(GraphValidationError):
        parser.parse("{not json")


def test_unsupported_format(parser):
    with pytest.raises(GraphValidationError):
        parser.parse("{}", fmt="toml")


def test_serialize_and_parse_back(parser):
    graph = parser.parse_dict(sample_graph_dict())
    again = parser.parse(parser.serialize(graph, fmt="yaml"), fmt="yaml")
    assert again == graph
