import copy

import pytest

from conftest import make_node
from flowpatch.diff.engine import apply_operations
from flowpatch.diff.operations import DisableNode, NodeRef, OperationError, RemoveNode, parse_operation
from flowpatch.structural.checker import validate_graph
from flowpatch.utils.graph import find_node_index


def find_node(nodes, node_id=None, node_name=None):
    return nodes[find_node_index(nodes, node_id=node_id, node_name=node_name)]


def test_disable_node_by_name():
    graph = {"name": "wf", "nodes": [{"id": "a", "name": "Start"}], "connections": {}}
    result = apply_operations(graph, [{"type": "disableNode", "nodeName": "Start"}])

    assert result.applied == [{"index": 0, "type": "disableNode", "nodeName": "Start"}]
    assert result.failed == []
    assert result.graph["nodes"][0]["disabled"] is True
    # the caller's snapshot is untouched
    assert "disabled" not in graph["nodes"][0]


def test_remove_missing_node_fails():
    graph = {"name": "wf", "nodes": [{"id": "a", "name": "Start"}], "connections": {}}
    result = apply_operations(graph, [{"type": "removeNode", "nodeName": "Missing"}])

    assert result.applied == []
    assert result.failed == [{"index": 0, "type": "removeNode", "error": "Node not found: Missing"}]
    assert not result.modified


def test_lookup_prefers_id_over_name():
    graph = {"nodes": [make_node("x", "First"), make_node("y", "Second")]}
    result = apply_operations(graph, [{"type": "removeNode", "nodeId": "y", "nodeName": "First"}])

    assert [n["name"] for n in result.graph["nodes"]] == ["First"]
    assert result.applied[0]["nodeName"] == "Second"


def test_lookup_falls_back_to_name_when_id_misses():
    graph = {"nodes": [make_node("x", "First"), make_node("y", "Second")]}
    result = apply_operations(graph, [{"type": "enableNode", "nodeId": "nope", "nodeName": "Second"}])

    assert result.graph["nodes"][1]["disabled"] is False
    assert result.failed == []


def test_update_node_shallow_merges(simple_graph):
    ops = [{"type": "updateNode", "nodeName": "HTTP", "updates": {"parameters": {"url": "https://x.io"}, "notes": "n"}}]
    result = apply_operations(simple_graph, ops)

    node = find_node(result.graph["nodes"], node_name="HTTP")
    assert node["parameters"] == {"url": "https://x.io"}
    assert node["notes"] == "n"
    assert node["type"] == "n8n-nodes-base.httpRequest"
    assert node["position"] == [0, 0]


def test_add_node_does_not_check_duplicates(simple_graph):
    result = apply_operations(simple_graph, [{"type": "addNode", "node": make_node("s2", "Set")}])

    assert result.failed == []
    assert len(result.graph["nodes"]) == 4
    report = validate_graph(result.graph)
    assert not report["valid"]
    assert any("Duplicate node name" in e["message"] for e in report["errors"])


def test_move_node(simple_graph):
    result = apply_operations(simple_graph, [{"type": "moveNode", "nodeId": "s1", "position": [300, 120]}])
    assert find_node(result.graph["nodes"], node_id="s1")["position"] == [300, 120]


def test_update_name_and_settings(simple_graph):
    ops = [
        {"type": "updateName", "name": "Renamed"},
        {"type": "updateSettings", "settings": {"timezone": "Europe/Berlin", "executionTimeout": 60}},
    ]
    result = apply_operations(simple_graph, ops)

    assert result.graph["name"] == "Renamed"
    assert result.graph["settings"] == {"executionOrder": "v1", "timezone": "Europe/Berlin", "executionTimeout": 60}
    assert result.applied[0] == {"index": 0, "type": "updateName", "newName": "Renamed"}


def test_add_and_remove_connection(simple_graph):
    ops = [
        {"type": "addConnection", "source": "Trigger", "target": "HTTP"},
        {"type": "removeConnection", "source": "Set", "target": "HTTP"},
    ]
    result = apply_operations(simple_graph, ops)

    assert result.failed == []
    conns = result.graph["connections"]
    assert conns["Trigger"]["main"][0] == [
        {"node": "Set", "type": "main", "index": 0},
        {"node": "HTTP", "type": "main", "index": 0},
    ]
    assert "Set" not in conns
    assert result.applied[0]["connection"] == "Trigger -> HTTP"


def test_add_connection_to_unknown_node_is_allowed(simple_graph):
    result = apply_operations(simple_graph, [{"type": "addConnection", "source": "HTTP", "target": "Ghost"}])

    assert result.failed == []
    report = validate_graph(result.graph)
    assert report["errors"] == [{"connection": "HTTP -> Ghost", "message": "Target node not found: Ghost"}]


def test_add_connection_on_second_output_pads_groups(simple_graph):
    ops = [{"type": "addConnection", "source": "HTTP", "target": "Set", "sourceIndex": 1}]
    result = apply_operations(simple_graph, ops)
    assert result.graph["connections"]["HTTP"]["main"] == [[], [{"node": "Set", "type": "main", "index": 0}]]


def test_duplicate_and_missing_connections_fail(simple_graph):
    ops = [
        {"type": "addConnection", "source": "Trigger", "target": "Set"},
        {"type": "removeConnection", "source": "HTTP", "target": "Set"},
    ]
    result = apply_operations(simple_graph, ops, continue_on_error=True)

    assert [f["error"] for f in result.failed] == [
        "Connection already exists: Trigger -> Set",
        "Connection not found: HTTP -> Set",
    ]


def test_tags(simple_graph):
    ops = [
        {"type": "addTag", "tag": "billing"},
        {"type": "addTag", "tag": "prod"},
        {"type": "removeTag", "tag": "prod"},
        {"type": "removeTag", "tag": "absent"},
    ]
    result = apply_operations(simple_graph, ops, continue_on_error=True)

    assert result.graph["tags"] == ["billing"]
    assert result.failed == [{"index": 3, "type": "removeTag", "error": "Tag not found: absent"}]


def test_unknown_operation_type():
    result = apply_operations({"nodes": []}, [{"type": "explode"}])
    assert result.failed == [{"index": 0, "type": "explode", "error": "Unknown operation type: explode"}]


def test_invalid_operation_payload_is_a_failure_record():
    result = apply_operations({"nodes": []}, [{"type": "moveNode", "nodeName": "A", "position": [1]}])
    assert len(result.failed) == 1
    assert result.failed[0]["error"].startswith("Invalid moveNode operation")


def test_atomic_policy_stops_at_first_failure(simple_graph):
    ops = [
        {"type": "disableNode", "nodeName": "Set"},
        {"type": "removeNode", "nodeName": "Missing"},
        {"type": "updateName", "name": "Never"},
    ]
    result = apply_operations(simple_graph, ops)

    assert [a["index"] for a in result.applied] == [0]
    assert [f["index"] for f in result.failed] == [1]
    # earlier mutations are kept
    assert find_node(result.graph["nodes"], node_name="Set")["disabled"] is True
    assert result.graph["name"] == "Simple"


@pytest.mark.parametrize("ops", [
    [{"type": "removeNode", "nodeName": "Missing"}, {"type": "disableNode", "nodeName": "Set"}],
    [{"type": "updateName", "name": "A"}, {"type": "bogus"}, {"type": "removeTag", "tag": "x"}],
    [{"type": "addTag", "tag": "a"}, {"type": "addTag", "tag": "b"}],
])
def test_continue_on_error_attempts_everything(simple_graph, ops):
    result = apply_operations(simple_graph, ops, continue_on_error=True)
    assert len(result.applied) + len(result.failed) == len(ops)
    indices = sorted([a["index"] for a in result.applied] + [f["index"] for f in result.failed])
    assert indices == list(range(len(ops)))


def test_remove_then_add_leaves_dangling_connections_out(simple_graph):
    node = copy.deepcopy(simple_graph["nodes"][2])
    ops = [
        {"type": "removeNode", "nodeName": "Set"},
        {"type": "addNode", "node": simple_graph["nodes"][1]},
    ]
    result = apply_operations(simple_graph, ops)

    assert {n["name"] for n in result.graph["nodes"]} == {"Trigger", "Set", "HTTP"}
    assert result.graph["nodes"][-1]["name"] == "Set"
    assert result.graph["nodes"][1] == node
    # connections are never touched by node removal
    assert result.graph["connections"] == simple_graph["connections"]


def test_dangling_reference_after_removal(simple_graph):
    result = apply_operations(simple_graph, [{"type": "removeNode", "nodeName": "HTTP"}])
    report = validate_graph(result.graph)
    assert not report["valid"]
    assert {"connection": "Set -> HTTP", "message": "Target node not found: HTTP"} in report["errors"]


def test_parsed_operations_are_accepted(simple_graph):
    ops = [DisableNode(ref=NodeRef(node_name="HTTP")), RemoveNode(ref=NodeRef(node_id="t1"))]
    result = apply_operations(simple_graph, ops)
    assert [a["type"] for a in result.applied] == ["disableNode", "removeNode"]


def test_parse_operation_rejects_missing_reference():
    with pytest.raises(OperationError):
        parse_operation({"type": "removeNode"})
    with pytest.raises(OperationError):
        parse_operation("removeNode")


@pytest.mark.parametrize("op_type", [["addNode"], {"kind": "addNode"}, None, 7])
def test_non_string_operation_type_is_unknown(op_type):
    result = apply_operations({"nodes": []}, [{"type": op_type}])

    assert result.applied == []
    assert result.failed == [{"index": 0, "type": op_type, "error": f"Unknown operation type: {op_type}"}]


def test_null_node_reference_is_rejected():
    with pytest.raises(OperationError, match="Invalid removeNode operation"):
        parse_operation({"type": "removeNode", "nodeId": None, "nodeName": None})

    # a null id next to a usable name is still fine
    op = parse_operation({"type": "removeNode", "nodeId": None, "nodeName": "A"})
    assert op.ref == NodeRef(node_name="A")


def test_single_hop_connection_groups_are_editable():
    graph = {
        "nodes": [make_node("a", "A"), make_node("b", "B"), make_node("c", "C")],
        "connections": {"A": {"main": [{"node": "B", "type": "main", "index": 0}]}},
    }
    assert validate_graph(graph)["valid"] is True

    result = apply_operations(graph, [
        {"type": "addConnection", "source": "A", "target": "C"},
        {"type": "removeConnection", "source": "A", "target": "B"},
    ])

    assert result.failed == []
    assert result.graph["connections"]["A"]["main"] == [[{"node": "C", "type": "main", "index": 0}]]


def test_remove_single_hop_connection():
    graph = {
        "nodes": [make_node("a", "A"), make_node("b", "B")],
        "connections": {"A": {"main": [{"node": "B", "type": "main", "index": 0}]}},
    }
    result = apply_operations(graph, [{"type": "removeConnection", "source": "A", "target": "B"}])

    assert result.failed == []
    assert result.graph["connections"] == {}
