# flowpatch/structural/metrics.py

import networkx as nx
from typing import Any, Dict, List, Set
from collections import deque

from flowpatch.utils.graph import build_graph, is_trigger_node


def find_orphan_nodes(workflow: Dict[str, Any], G: nx.DiGraph = None) -> List[str]:
    """
    Nodes with no incoming and no outgoing connection, in node order.
    A single-node workflow has no orphans by definition.
    """
    nodes = workflow.get("nodes", []) or []
    if len(nodes) < 2:
        return []
    G = G if G is not None else build_graph(workflow)
    orphans = []
    for n in nodes:
        name = n.get("name")
        if name in G and G.in_degree(name) == 0 and G.out_degree(name) == 0:
            orphans.append(name)
    return orphans


def find_cycles(workflow: Dict[str, Any], G: nx.DiGraph = None) -> List[List[str]]:
    """
    Simple cycles of the connection graph, each as node names in edge order
    starting from the smallest name.
    """
    G = G if G is not None else build_graph(workflow)
    if nx.is_directed_acyclic_graph(G):
        return []
    cycles = []
    for c in nx.simple_cycles(G):
        start = c.index(min(c))
        cycles.append(c[start:] + c[:start])
    return sorted(cycles)


def find_unreachable_nodes(workflow: Dict[str, Any], G: nx.DiGraph = None) -> List[str]:
    """
    Node names that no trigger can reach.
    Without any trigger there is nothing to measure from, so nothing is reported
    (missing triggers are reported separately).
    """
    nodes = workflow.get("nodes", []) or []
    G = G if G is not None else build_graph(workflow)

    triggers = [n.get("name") for n in nodes if n.get("name") and is_trigger_node(n)]
    if not triggers:
        return []

    reachable: Set[str] = set(triggers)
    q = deque(triggers)
    while q:
        cur = q.popleft()
        for nxt in G.successors(cur):
            if nxt not in reachable:
                reachable.add(nxt)
                q.append(nxt)

    return [n.get("name") for n in nodes if n.get("name") and n.get("name") not in reachable]


def compute_structural_metrics(workflow: Dict[str, Any]) -> Dict[str, Any]:
    """
    Graph-level diagnostics for batch reports.
    """
    nodes = workflow.get("nodes", []) or []
    G = build_graph(workflow)
    n_nodes = len(nodes)

    orphans = find_orphan_nodes(workflow, G)
    cycles = find_cycles(workflow, G)
    unreachable = find_unreachable_nodes(workflow, G)
    triggers = [n.get("name") for n in nodes if is_trigger_node(n)]

    if G.number_of_nodes():
        largest_cc = max(nx.weakly_connected_components(G), key=len)
        connected_ratio = len(largest_cc) / G.number_of_nodes()
    else:
        connected_ratio = 0.0

    return {
        "n_nodes": n_nodes,
        "n_edges": G.number_of_edges(),
        "connected_ratio": float(connected_ratio),
        "acyclic": not cycles,
        "triggers": triggers,
        "orphan_nodes": orphans,
        "cycles": cycles,
        "unreachable_nodes": unreachable,
    }
