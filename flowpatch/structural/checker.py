# flowpatch/structural/checker.py

from typing import Dict, Any, List, Optional
from collections import Counter

from flowpatch.structural.expressions import unbalanced_strings, unmarked_expressions
from flowpatch.structural.metrics import find_cycles, find_orphan_nodes, find_unreachable_nodes
from flowpatch.utils.graph import build_graph, has_trigger, is_trigger_node, iter_connections, node_names
from flowpatch.utils.logger import get_logger

log = get_logger("validation")

DEFAULT_PROFILE = "runtime"

# Extra checks switched on per profile; `runtime` is the baseline.
PROFILE_RULES = {
    "minimal":     {"warnings": False, "orphans": False, "braces": False, "markers": False, "graph": False},
    "runtime":     {"warnings": True,  "orphans": False, "braces": False, "markers": False, "graph": False},
    "ai-friendly": {"warnings": True,  "orphans": True,  "braces": True,  "markers": False, "graph": False},
    "strict":      {"warnings": True,  "orphans": True,  "braces": True,  "markers": True,  "graph": True},
}


def _check_nodes(nodes: List[Dict[str, Any]], errors: List[dict], warnings: List[dict]) -> None:
    # each field is checked on its own; one missing field does not hide another
    for n in nodes:
        if not n.get("id"):
            errors.append({"node": n.get("name"), "message": "Missing node ID"})
        if not n.get("name"):
            errors.append({"node": n.get("id"), "message": "Missing node name"})
        if not n.get("type"):
            errors.append({"node": n.get("name"), "message": "Missing node type"})
        pos = n.get("position")
        if not isinstance(pos, (list, tuple)) or len(pos) != 2:
            warnings.append({"node": n.get("name"), "message": "Invalid or missing position"})

    name_counts = Counter(n.get("name") for n in nodes if n.get("name"))
    id_counts = Counter(n.get("id") for n in nodes if n.get("id"))
    for name, count in name_counts.items():
        if count > 1:
            errors.append({"node": name, "message": f"Duplicate node name: {name}"})
    for nid, count in id_counts.items():
        if count > 1:
            errors.append({"node": nid, "message": f"Duplicate node ID: {nid}"})


def _check_connections(workflow: Dict[str, Any], errors: List[dict]) -> None:
    names = node_names(workflow)
    reported_sources = set()
    for src in (workflow.get("connections") or {}):
        if src not in names and src not in reported_sources:
            reported_sources.add(src)
            errors.append({"connection": src, "message": f"Source node not found: {src}"})

    for src, _out, _gi, target in iter_connections(workflow):
        tgt = target.get("node")
        if tgt not in names:
            errors.append({
                "connection": f"{src} -> {tgt}",
                "message": f"Target node not found: {tgt}",
            })


def _check_expressions(nodes: List[Dict[str, Any]], rules: Dict[str, bool], warnings: List[dict]) -> None:
    # Unmarked expressions are only escalated under `strict`; the autofix
    # expression-format detector reports them otherwise.
    for n in nodes:
        params = n.get("parameters") or {}
        if rules["braces"]:
            for text in unbalanced_strings(params):
                warnings.append({"node": n.get("name"), "message": f"Unbalanced expression braces: {text}"})
        if rules["markers"]:
            for expr in unmarked_expressions(params):
                warnings.append({"node": n.get("name"), "message": f"Expression missing = prefix: {expr}"})


def _check_structure(workflow: Dict[str, Any], rules: Dict[str, bool], warnings: List[dict]) -> None:
    nodes = workflow.get("nodes", []) or []
    if not nodes:
        return
    G = build_graph(workflow)

    if rules["orphans"]:
        for name in find_orphan_nodes(workflow, G):
            warnings.append({"node": name, "message": "Node is not connected to any other node"})

    if rules["graph"]:
        if not has_trigger(nodes):
            warnings.append({"node": None, "message": "Workflow has no trigger node"})
        for name in find_unreachable_nodes(workflow, G):
            warnings.append({"node": name, "message": "Node is not reachable from any trigger"})
        for cycle in find_cycles(workflow, G):
            warnings.append({"connection": " -> ".join(cycle + cycle[:1]), "message": "Connections form a cycle"})


def validate_graph(workflow: Dict[str, Any], options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Validate a workflow graph without mutating it.

    options:
      validateNodes / validateConnections / validateExpressions (default True)
      profile: minimal | runtime | ai-friendly | strict (default runtime)

    Returns {"valid", "summary", "errors", "warnings"}; valid iff no errors.
    """
    options = options or {}
    profile = options.get("profile") or DEFAULT_PROFILE
    rules = PROFILE_RULES.get(profile, PROFILE_RULES[DEFAULT_PROFILE])
    nodes = workflow.get("nodes", []) or []

    errors: List[dict] = []
    warnings: List[dict] = []

    if options.get("validateNodes", True):
        _check_nodes(nodes, errors, warnings)

    if options.get("validateConnections", True):
        _check_connections(workflow, errors)
        _check_structure(workflow, rules, warnings)

    if options.get("validateExpressions", True):
        _check_expressions(nodes, rules, warnings)

    if not rules["warnings"]:
        warnings = []

    log.debug("validated %d nodes (profile=%s): %d errors, %d warnings",
              len(nodes), profile, len(errors), len(warnings))

    return {
        "valid": not errors,
        "summary": {
            "totalNodes": len(nodes),
            "enabledNodes": sum(1 for n in nodes if not n.get("disabled")),
            "triggerNodes": sum(1 for n in nodes if is_trigger_node(n)),
            "errorCount": len(errors),
            "warningCount": len(warnings),
        },
        "errors": errors,
        "warnings": warnings,
    }
