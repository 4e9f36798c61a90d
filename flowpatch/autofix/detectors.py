# flowpatch/autofix/detectors.py
from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

from flowpatch.structural.expressions import unmarked_expressions
from flowpatch.utils.graph import is_webhook_node

EXPRESSION_FORMAT = "expression-format"
TYPEVERSION_MISSING = "typeversion-missing"
WEBHOOK_MISSING_PATH = "webhook-missing-path"

DEFAULT_TYPE_VERSION = 1


def webhook_path_slug(name: str) -> str:
    """'Incoming Order Hook' -> 'incoming-order-hook'"""
    return re.sub(r"\s+", "-", (name or "").lower())


def detect_expression_format(node: Dict[str, Any]) -> List[Dict[str, Any]]:
    exprs = unmarked_expressions(node.get("parameters") or {})
    if not exprs:
        return []
    return [{
        "node": node.get("name"),
        "type": EXPRESSION_FORMAT,
        "issue": "Expression missing = prefix",
        "fix": "Add = prefix to expression",
        "confidence": "high",
        "expressions": exprs,
    }]


def detect_missing_type_version(node: Dict[str, Any]) -> List[Dict[str, Any]]:
    if node.get("typeVersion"):
        return []
    return [{
        "node": node.get("name"),
        "type": TYPEVERSION_MISSING,
        "issue": "Node missing typeVersion",
        "fix": f"Add typeVersion: {DEFAULT_TYPE_VERSION}",
        "confidence": "high",
    }]


def detect_webhook_missing_path(node: Dict[str, Any]) -> List[Dict[str, Any]]:
    if not is_webhook_node(node) or (node.get("parameters") or {}).get("path"):
        return []
    slug = webhook_path_slug(node.get("name"))
    return [{
        "node": node.get("name"),
        "type": WEBHOOK_MISSING_PATH,
        "issue": "Webhook node missing path",
        "fix": f'Add path: "{slug}"',
        "confidence": "medium",
        "path": slug,
    }]


# Detector order is report order: all expression findings first, then
# typeVersion, then webhook paths.
DETECTORS = [
    detect_expression_format,
    detect_missing_type_version,
    detect_webhook_missing_path,
]


def detect_fixes(workflow: Dict[str, Any]) -> List[Tuple[int, Dict[str, Any]]]:
    """Run every detector; returns (node index, fix) pairs."""
    nodes = workflow.get("nodes", []) or []
    found: List[Tuple[int, Dict[str, Any]]] = []
    for detector in DETECTORS:
        for idx, node in enumerate(nodes):
            found.extend((idx, fix) for fix in detector(node))
    return found
