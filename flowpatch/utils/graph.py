# flowpatch/utils/graph.py
from __future__ import annotations

import copy
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

import networkx as nx

TRIGGER_KEYS = ("trigger", "webhook", "schedule", "cron", "poll")


def clone_graph(workflow: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-copy a workflow so callers can mutate it freely.
    Missing nodes/connections/settings are normalised to empty containers.
    """
    wf = copy.deepcopy(workflow) if workflow else {}
    if not isinstance(wf.get("nodes"), list):
        wf["nodes"] = []
    if not isinstance(wf.get("connections"), dict):
        wf["connections"] = {}
    if not isinstance(wf.get("settings"), dict):
        wf["settings"] = {}
    return wf


def find_node_index(
    nodes: List[Dict[str, Any]],
    node_id: Optional[str] = None,
    node_name: Optional[str] = None,
) -> int:
    """
    Locate a node by id or name. An id match wins; the name is only
    consulted when no id was given or no node carries that id.
    """
    if node_id is not None:
        for i, n in enumerate(nodes):
            if n.get("id") == node_id:
                return i
    if node_name is not None:
        for i, n in enumerate(nodes):
            if n.get("name") == node_name:
                return i
    return -1


def node_names(workflow: Dict[str, Any]) -> Set[str]:
    return {n.get("name") for n in workflow.get("nodes", []) or [] if n.get("name")}


def iter_connections(workflow: Dict[str, Any]) -> Iterator[Tuple[str, str, int, Dict[str, Any]]]:
    """
    Walk n8n connections:
      connections[<source name>][<output type>][<group index>] -> [{node, type, index}, ...]
    Yields (source, output_type, group_index, target) for every target entry.
    Malformed shapes are skipped rather than raised.
    """
    conns = workflow.get("connections") or {}
    for src_name, outs in conns.items():
        if not isinstance(outs, dict):
            continue
        for out_type, groups in outs.items():
            if not isinstance(groups, list):
                continue
            for gi, group in enumerate(groups):
                if isinstance(group, dict):
                    # some exporters put a single hop instead of a list
                    group = [group]
                if not isinstance(group, list):
                    continue
                for target in group:
                    if isinstance(target, dict):
                        yield src_name, out_type, gi, target


def _normalize_groups(groups: List[Any]) -> List[Any]:
    # same tolerance as iter_connections: a bare hop is a one-entry group,
    # anything else unreadable is an empty group
    for gi, group in enumerate(groups):
        if isinstance(group, dict):
            groups[gi] = [group]
        elif not isinstance(group, list):
            groups[gi] = []
    return groups


def add_connection(
    workflow: Dict[str, Any],
    source: str,
    target: str,
    source_output: str = "main",
    target_input: str = "main",
    source_index: int = 0,
    target_index: int = 0,
) -> bool:
    """Append a connection entry. Returns False if the identical entry exists."""
    conns = workflow.setdefault("connections", {})
    if not isinstance(conns.get(source), dict):
        conns[source] = {}
    outs = conns[source]
    if not isinstance(outs.get(source_output), list):
        outs[source_output] = []
    groups = _normalize_groups(outs[source_output])
    while len(groups) <= source_index:
        groups.append([])
    entry = {"node": target, "type": target_input, "index": target_index}
    if entry in groups[source_index]:
        return False
    groups[source_index].append(entry)
    return True


def remove_connection(
    workflow: Dict[str, Any],
    source: str,
    target: str,
    source_output: str = "main",
    target_input: str = "main",
    source_index: int = 0,
    target_index: int = 0,
) -> bool:
    """Remove a connection entry and prune what becomes empty. Returns False if absent."""
    conns = workflow.get("connections") or {}
    outs = conns.get(source)
    groups = outs.get(source_output) if isinstance(outs, dict) else None
    if not isinstance(groups, list) or source_index >= len(groups):
        return False
    group = _normalize_groups(groups)[source_index]
    entry = {"node": target, "type": target_input, "index": target_index}
    if entry not in group:
        return False
    group.remove(entry)

    # trailing empty groups carry no meaning; inner ones keep output positions
    while groups and not groups[-1]:
        groups.pop()
    if not groups:
        del conns[source][source_output]
    if not conns[source]:
        del conns[source]
    return True


def is_trigger_node(node: Dict[str, Any]) -> bool:
    ntype = str(node.get("type") or "").lower()
    return any(k in ntype for k in TRIGGER_KEYS)


def is_webhook_node(node: Dict[str, Any]) -> bool:
    ntype = str(node.get("type") or "").lower()
    return "webhook" in ntype and "respondtowebhook" not in ntype


def has_trigger(nodes: List[dict]) -> bool:
    return any(is_trigger_node(n) for n in nodes)


def build_graph(workflow: Dict[str, Any]) -> nx.DiGraph:
    """
    Build a directed graph keyed by node name.
    Names referenced only by connections are added as bare vertices.
    """
    G = nx.DiGraph()
    for n in workflow.get("nodes", []) or []:
        name = n.get("name")
        if name:
            G.add_node(name, **n)

    for src, _out, _gi, target in iter_connections(workflow):
        tgt = target.get("node")
        if not tgt:
            continue
        G.add_edge(src, tgt)
    return G
