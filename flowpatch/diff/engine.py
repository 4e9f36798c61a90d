# flowpatch/diff/engine.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from flowpatch.diff.operations import (
    AddConnection,
    AddNode,
    AddTag,
    DisableNode,
    EnableNode,
    MoveNode,
    NodeRef,
    OperationError,
    RemoveConnection,
    RemoveNode,
    RemoveTag,
    UpdateName,
    UpdateNode,
    UpdateSettings,
    parse_operation,
)
from flowpatch.utils.graph import add_connection, clone_graph, find_node_index, remove_connection
from flowpatch.utils.logger import get_logger

log = get_logger("diff")


@dataclass
class DiffResult:
    graph: Dict[str, Any]
    applied: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def modified(self) -> bool:
        return bool(self.applied)


# ---------- Handlers: mutate `wf` in place, return the descriptor fields ----------

def _locate(wf: Dict[str, Any], ref: NodeRef) -> int:
    idx = find_node_index(wf["nodes"], node_id=ref.node_id, node_name=ref.node_name)
    if idx < 0:
        raise OperationError(f"Node not found: {ref.label}")
    return idx


def _add_node(wf, op: AddNode):
    # no uniqueness check here; duplicate names surface in validation
    wf["nodes"].append(copy.deepcopy(op.node))
    return {"nodeName": op.node.get("name")}


def _remove_node(wf, op: RemoveNode):
    removed = wf["nodes"].pop(_locate(wf, op.ref))
    return {"nodeName": removed.get("name")}


def _update_node(wf, op: UpdateNode):
    idx = _locate(wf, op.ref)
    wf["nodes"][idx] = {**wf["nodes"][idx], **copy.deepcopy(op.updates)}
    return {"nodeName": wf["nodes"][idx].get("name")}


def _move_node(wf, op: MoveNode):
    node = wf["nodes"][_locate(wf, op.ref)]
    node["position"] = list(op.position)
    return {"nodeName": node.get("name")}


def _set_disabled(disabled: bool):
    def handler(wf, op):
        node = wf["nodes"][_locate(wf, op.ref)]
        node["disabled"] = disabled
        return {"nodeName": node.get("name")}
    return handler


def _add_connection(wf, op: AddConnection):
    c = op.connection
    if not add_connection(wf, c.source, c.target, c.source_output, c.target_input,
                          c.source_index, c.target_index):
        raise OperationError(f"Connection already exists: {c.label}")
    return {"connection": c.label}


def _remove_connection(wf, op: RemoveConnection):
    c = op.connection
    if not remove_connection(wf, c.source, c.target, c.source_output, c.target_input,
                             c.source_index, c.target_index):
        raise OperationError(f"Connection not found: {c.label}")
    return {"connection": c.label}


def _update_name(wf, op: UpdateName):
    wf["name"] = op.name
    return {"newName": op.name}


def _update_settings(wf, op: UpdateSettings):
    wf["settings"] = {**(wf.get("settings") or {}), **copy.deepcopy(op.settings)}
    return {}


def _tag_name(tag: Any) -> Any:
    return tag.get("name") if isinstance(tag, dict) else tag


def _add_tag(wf, op: AddTag):
    tags = wf.get("tags")
    if not isinstance(tags, list):
        tags = wf["tags"] = []
    if op.tag not in [_tag_name(t) for t in tags]:
        tags.append(op.tag)
    return {"tag": op.tag}


def _remove_tag(wf, op: RemoveTag):
    tags = wf.get("tags") or []
    names = [_tag_name(t) for t in tags]
    if op.tag not in names:
        raise OperationError(f"Tag not found: {op.tag}")
    del tags[names.index(op.tag)]
    return {"tag": op.tag}


_HANDLERS: Dict[type, Callable[[Dict[str, Any], Any], Dict[str, Any]]] = {
    AddNode: _add_node,
    RemoveNode: _remove_node,
    UpdateNode: _update_node,
    MoveNode: _move_node,
    EnableNode: _set_disabled(False),
    DisableNode: _set_disabled(True),
    AddConnection: _add_connection,
    RemoveConnection: _remove_connection,
    UpdateName: _update_name,
    UpdateSettings: _update_settings,
    AddTag: _add_tag,
    RemoveTag: _remove_tag,
}


def apply_operations(
    workflow: Dict[str, Any],
    operations: List[Any],
    continue_on_error: bool = False,
) -> DiffResult:
    """
    Apply diff operations, in order, to a copy of `workflow`.

    Policies:
      - atomic (default): stop at the first failure. Later operations are
        neither applied nor reported; earlier ones stay applied.
      - continue_on_error: attempt everything and partition into applied/failed.

    The input graph is never mutated. Operations may be raw dicts or
    already-parsed dataclasses.
    """
    result = DiffResult(graph=clone_graph(workflow))

    for i, raw in enumerate(operations):
        op_type = raw.get("type") if isinstance(raw, dict) else getattr(raw, "kind", None)
        try:
            op = raw if type(raw) in _HANDLERS else parse_operation(raw)
            descriptor = _HANDLERS[type(op)](result.graph, op)
        except OperationError as e:
            log.debug("operation %d (%s) failed: %s", i, op_type, e)
            result.failed.append({"index": i, "type": op_type, "error": str(e)})
            if not continue_on_error:
                break
            continue

        log.debug("operation %d (%s) applied", i, op_type)
        result.applied.append({"index": i, "type": op_type, **descriptor})

    return result
