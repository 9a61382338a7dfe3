import pytest

from autoflow.exceptions import DanglingEdgeError, GraphValidationError, NoTriggerError
from autoflow.models.workflow import Edge, NodeType, WorkflowGraph, find_trigger_node, outgoing_edges

from conftest import graph, node


def test_find_trigger_returns_first_trigger():
    g = graph([
        node("fetch", "dataSource", source="weather"),
        node("t1", "trigger"),
        node("t2", "trigger"),
    ])
    assert find_trigger_node(g).id == "t1"


def test_find_trigger_without_trigger_raises():
    g = graph([node("fetch", "dataSource", source="weather")])
    with pytest.raises(NoTriggerError) as exc:
        find_trigger_node(g)
    assert str(exc.value) == "No trigger node found"


def test_outgoing_edges_keep_insertion_order():
    g = graph(
        [node("t", "trigger"), node("b", "action", action="x"), node("a", "action", action="x")],
        [("t", "b"), ("t", "a")],
    )
    assert [e.target for e in outgoing_edges(g, "t")] == ["b", "a"]
    assert outgoing_edges(g, "a") == []


def test_graph_stores_tuples():
    g = WorkflowGraph(nodes=[node("t", "trigger")], edges=[])
    assert isinstance(g.nodes, tuple)
    assert isinstance(g.edges, tuple)
    assert g.get_node("t").type == NodeType.TRIGGER
    assert g.get_node("missing") is None


def test_check_rejects_duplicate_ids():
    g = WorkflowGraph(nodes=(node("t", "trigger"), node("t", "trigger")))
    with pytest.raises(GraphValidationError, match="Duplicate node id"):
        g.check()


def test_check_rejects_dangling_edge():
    g = graph([node("t", "trigger")], [("t", "ghost")])
    with pytest.raises(DanglingEdgeError) as exc:
        g.check()
    assert exc.value.node_id == "ghost"


def test_check_rejects_self_loop():
    g = graph([node("t", "trigger"), node("a", "action", action="x")], [("t", "a"), ("a", "a")])
    with pytest.raises(GraphValidationError, match="self-loop"):
        g.check()


def test_check_accepts_well_formed_graph():
    graph([node("t", "trigger"), node("a", "action", action="x")], [("t", "a")]).check()


def test_display_name_falls_back_to_id():
    assert node("n1", "trigger").display_name == "n1"
    assert node("n1", "trigger", "Start").display_name == "Start"
