# flowpatch/tools/workflows.py
"""
Agent-facing workflow tools.

Every tool takes the workflow store explicitly and a raw argument dict, and
always returns a tool response:
    {"content": [{"type": "text", "text": <json>}], "isError": True?}
Only argument and transport failures produce an error response; per-operation
failures and validation findings are part of a normal result.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List

from flowpatch.autofix.fixer import DEFAULT_CONFIDENCE, DEFAULT_MAX_FIXES, autofix_graph
from flowpatch.diff.engine import apply_operations
from flowpatch.remote.client import N8nApiError
from flowpatch.remote.store import WorkflowStore
from flowpatch.structural.checker import validate_graph
from flowpatch.structural.schema import (
    AUTOFIX_ARGS_SCHEMA,
    GET_ARGS_SCHEMA,
    OPERATION_TYPES,
    UPDATE_PARTIAL_ARGS_SCHEMA,
    VALIDATE_ARGS_SCHEMA,
    validate_args,
)
from flowpatch.utils.graph import is_trigger_node
from flowpatch.utils.io import dumps
from flowpatch.utils.logger import get_logger

log = get_logger("tools")

ToolResponse = Dict[str, Any]

# argument problems, file/JSON problems and API failures end the call
_CALL_ERRORS = (N8nApiError, ValueError, OSError)


def _ok(payload: Any) -> ToolResponse:
    return {"content": [{"type": "text", "text": dumps(payload)}]}


def _fail(action: str, exc: Exception) -> ToolResponse:
    log.warning("error %s: %s", action, exc)
    return {"content": [{"type": "text", "text": f"Error {action}: {exc}"}], "isError": True}


def apply_partial_update(store: WorkflowStore, args: Dict[str, Any]) -> ToolResponse:
    try:
        validate_args(UPDATE_PARTIAL_ARGS_SCHEMA, args, "updatePartialWorkflow")
        wf_id = args["id"]
        workflow = store.fetch_graph(wf_id)

        result = apply_operations(
            workflow,
            args["operations"],
            continue_on_error=bool(args.get("continueOnError")),
        )

        if args.get("validateOnly"):
            return _ok({
                "validated": True,
                "wouldApply": len(result.applied),
                "wouldFail": len(result.failed),
                "operations": result.applied,
                "failures": result.failed,
            })

        if result.modified:
            store.replace_graph(wf_id, result.graph)
            log.info("workflow %s: %d operations applied, %d failed",
                     wf_id, len(result.applied), len(result.failed))

        return _ok({
            "success": True,
            "workflowId": wf_id,
            "applied": len(result.applied),
            "failed": len(result.failed),
            "operations": result.applied,
            "failures": result.failed,
            "message": f"Applied {len(result.applied)} operations to workflow",
        })
    except _CALL_ERRORS as e:
        return _fail("updating workflow", e)


def validate_workflow(store: WorkflowStore, args: Dict[str, Any]) -> ToolResponse:
    try:
        validate_args(VALIDATE_ARGS_SCHEMA, args, "validateWorkflow")
        workflow = store.fetch_graph(args["id"])
        report = validate_graph(workflow, args.get("options") or {})
        return _ok({
            "workflowId": args["id"],
            "workflowName": workflow.get("name"),
            **report,
        })
    except _CALL_ERRORS as e:
        return _fail("validating workflow", e)


def autofix_workflow(store: WorkflowStore, args: Dict[str, Any]) -> ToolResponse:
    try:
        validate_args(AUTOFIX_ARGS_SCHEMA, args, "autofixWorkflow")
        wf_id = args["id"]
        apply_fixes = bool(args.get("applyFixes"))
        workflow = store.fetch_graph(wf_id)

        result = autofix_graph(
            workflow,
            apply_fixes=apply_fixes,
            fix_types=args.get("fixTypes"),
            confidence_threshold=args.get("confidenceThreshold", DEFAULT_CONFIDENCE),
            max_fixes=args.get("maxFixes", DEFAULT_MAX_FIXES),
        )

        if apply_fixes and result.applied:
            store.replace_graph(wf_id, result.graph)
            log.info("workflow %s: applied %d fixes", wf_id, result.applied)

        if apply_fixes:
            message = f"Applied {result.applied} of {len(result.fixes)} fixes to workflow"
        else:
            message = f"Found {len(result.fixes)} potential fixes. Set applyFixes=true to apply them."

        return _ok({
            "workflowId": wf_id,
            "workflowName": workflow.get("name"),
            "fixesFound": len(result.fixes),
            "fixesApplied": result.applied,
            "fixesDetected": result.detected,
            "fixes": result.fixes,
            "message": message,
        })
    except _CALL_ERRORS as e:
        return _fail("autofixing workflow", e)


def get_workflow(store: WorkflowStore, args: Dict[str, Any]) -> ToolResponse:
    try:
        validate_args(GET_ARGS_SCHEMA, args, "getWorkflow")
        workflow = store.fetch_graph(args["id"])
        mode = args.get("mode") or "full"
        nodes = workflow.get("nodes", []) or []

        if mode == "minimal":
            result = {k: workflow.get(k) for k in ("id", "name", "active", "tags", "createdAt", "updatedAt")}
        elif mode == "structure":
            result = {
                "id": workflow.get("id"),
                "name": workflow.get("name"),
                "nodes": [
                    {k: n.get(k) for k in ("id", "name", "type", "position", "disabled")}
                    for n in nodes
                ],
                "connections": workflow.get("connections") or {},
            }
        elif mode == "details":
            result = {
                **workflow,
                "nodeCount": len(nodes),
                "triggerNodes": sum(1 for n in nodes if is_trigger_node(n)),
            }
        else:
            result = workflow
        return _ok(result)
    except _CALL_ERRORS as e:
        return _fail("getting workflow", e)


# ---------- Tool catalogue ----------

TOOLS: List[Dict[str, Any]] = [
    {
        "name": "n8n_update_partial_workflow",
        "description": (
            "Apply incremental changes to an existing workflow using diff operations "
            f"({'|'.join(OPERATION_TYPES)}). Default policy stops at the first failing "
            "operation and keeps the operations applied before it; continueOnError=true "
            "attempts every operation. validateOnly=true reports what would happen and "
            "never saves."
        ),
        "inputSchema": UPDATE_PARTIAL_ARGS_SCHEMA,
        "handler": apply_partial_update,
    },
    {
        "name": "n8n_validate_workflow",
        "description": (
            "Validate workflow nodes, connections and expressions. Profiles: minimal "
            "(errors only), runtime (default), ai-friendly (+ orphan nodes, unbalanced "
            "expression braces), strict (+ unmarked expressions, triggers, reachability, cycles)."
        ),
        "inputSchema": VALIDATE_ARGS_SCHEMA,
        "handler": validate_workflow,
    },
    {
        "name": "n8n_autofix_workflow",
        "description": (
            "Detect common workflow defects and optionally repair them. typeversion-missing "
            "and webhook-missing-path are repaired when applyFixes=true; expression-format "
            "is reported only. Filters: fixTypes, confidenceThreshold (default medium), "
            "maxFixes (default 50)."
        ),
        "inputSchema": AUTOFIX_ARGS_SCHEMA,
        "handler": autofix_workflow,
    },
    {
        "name": "n8n_get_workflow",
        "description": "Retrieve a workflow by ID (mode: full | details | structure | minimal).",
        "inputSchema": GET_ARGS_SCHEMA,
        "handler": get_workflow,
    },
]

_BY_NAME: Dict[str, Callable[[WorkflowStore, Dict[str, Any]], ToolResponse]] = {
    t["name"]: t["handler"] for t in TOOLS
}


def list_tools() -> List[Dict[str, Any]]:
    """Tool metadata without the Python handlers."""
    return [{k: v for k, v in t.items() if k != "handler"} for t in TOOLS]


def call_tool(store: WorkflowStore, name: str, args: Dict[str, Any]) -> ToolResponse:
    handler = _BY_NAME.get(name)
    if handler is None:
        return {"content": [{"type": "text", "text": f"Unknown tool: {name}"}], "isError": True}
    return handler(store, args or {})
