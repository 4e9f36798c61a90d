# flowpatch/autofix/fixer.py
"""
Autofix engine.

Detection always runs every detector. The report is then narrowed by the
caller's filters, in this order:
  1. fix_types allow-list
  2. confidence threshold (high > medium > low)
  3. max_fixes cap

With apply_fixes=True the surviving fixes are applied to a copy of the
graph. Only `typeversion-missing` and `webhook-missing-path` have a
mechanical repair; `expression-format` findings are report-only and keep
`applied: False`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from flowpatch.autofix.detectors import (
    DEFAULT_TYPE_VERSION,
    TYPEVERSION_MISSING,
    WEBHOOK_MISSING_PATH,
    detect_fixes,
)
from flowpatch.utils.graph import clone_graph
from flowpatch.utils.logger import get_logger

log = get_logger("autofix")

CONFIDENCE_RANK = {"high": 3, "medium": 2, "low": 1}
DEFAULT_CONFIDENCE = "medium"
DEFAULT_MAX_FIXES = 50


@dataclass
class AutofixResult:
    graph: Dict[str, Any]
    fixes: List[Dict[str, Any]] = field(default_factory=list)
    detected: int = 0

    @property
    def applied(self) -> int:
        return sum(1 for f in self.fixes if f.get("applied"))


def _set_type_version(node: Dict[str, Any], fix: Dict[str, Any]) -> bool:
    if node.get("typeVersion"):
        return False
    node["typeVersion"] = DEFAULT_TYPE_VERSION
    return True


def _set_webhook_path(node: Dict[str, Any], fix: Dict[str, Any]) -> bool:
    params = node.get("parameters")
    if not isinstance(params, dict):
        params = node["parameters"] = {}
    if params.get("path"):
        return False
    params["path"] = fix["path"]
    return True


REPAIRS: Dict[str, Callable[[Dict[str, Any], Dict[str, Any]], bool]] = {
    TYPEVERSION_MISSING: _set_type_version,
    WEBHOOK_MISSING_PATH: _set_webhook_path,
}


def autofix_graph(
    workflow: Dict[str, Any],
    apply_fixes: bool = False,
    fix_types: Optional[Iterable[str]] = None,
    confidence_threshold: str = DEFAULT_CONFIDENCE,
    max_fixes: int = DEFAULT_MAX_FIXES,
) -> AutofixResult:
    graph = clone_graph(workflow)
    found = detect_fixes(graph)

    allowed = set(fix_types) if fix_types else None
    floor = CONFIDENCE_RANK.get(confidence_threshold or DEFAULT_CONFIDENCE, CONFIDENCE_RANK[DEFAULT_CONFIDENCE])

    selected = [
        (idx, fix) for idx, fix in found
        if (allowed is None or fix["type"] in allowed)
        and CONFIDENCE_RANK.get(fix["confidence"], 0) >= floor
    ]
    if max_fixes is not None:
        selected = selected[:max_fixes]

    result = AutofixResult(graph=graph, detected=len(found))
    for idx, fix in selected:
        fix = {**fix, "applied": False}
        repair = REPAIRS.get(fix["type"])
        if apply_fixes and repair is not None:
            fix["applied"] = repair(graph["nodes"][idx], fix)
            if fix["applied"]:
                log.debug("applied %s to node %r", fix["type"], fix["node"])
        result.fixes.append(fix)

    return result
