# flowpatch/structural/schema.py
from typing import Any, Dict, List

from jsonschema import Draft7Validator


class ArgumentError(ValueError):
    """Raised when tool arguments or an operation payload do not match their schema."""

    def __init__(self, message: str, problems: List[str] = None):
        super().__init__(message)
        self.problems = problems or []


# Loose document shape: node-level defects (missing id/name/type) are reported
# by the validation engine, not rejected on load.
WORKFLOW_DOCUMENT_SCHEMA = {
    "type": "object",
    "required": ["nodes"],
    "properties": {
        "id": {"type": ["string", "number"]},
        "name": {"type": "string"},
        "nodes": {
            "type": "array",
            "items": {"type": "object"},
        },
        "connections": {
            "type": "object",
            "additionalProperties": {"type": "object"},
        },
        "settings": {"type": "object"},
    },
    "additionalProperties": True,
}

_NON_EMPTY = {"type": "string", "minLength": 1}
_POSITION = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 2,
    "maxItems": 2,
}

# removeNode/updateNode/... accept nodeId, nodeName or both; at least one must be a string
_NODE_REF = {
    "nodeId": {"type": ["string", "null"]},
    "nodeName": {"type": ["string", "null"]},
}
_NODE_REF_REQUIRED = {"anyOf": [
    {"required": ["nodeId"], "properties": {"nodeId": {"type": "string"}}},
    {"required": ["nodeName"], "properties": {"nodeName": {"type": "string"}}},
]}

_CONNECTION = {
    "source": _NON_EMPTY,
    "target": _NON_EMPTY,
    "sourceOutput": _NON_EMPTY,
    "targetInput": _NON_EMPTY,
    "sourceIndex": {"type": "integer", "minimum": 0},
    "targetIndex": {"type": "integer", "minimum": 0},
}


def _op(properties: Dict[str, Any], required: List[str] = (), **extra) -> Dict[str, Any]:
    schema = {
        "type": "object",
        "required": ["type", *required],
        "properties": {"type": {"type": "string"}, **properties},
        "additionalProperties": True,
    }
    schema.update(extra)
    return schema


OPERATION_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "addNode": _op({"node": {"type": "object"}}, ["node"]),
    "removeNode": _op(_NODE_REF, **_NODE_REF_REQUIRED),
    "updateNode": _op({**_NODE_REF, "updates": {"type": "object"}}, ["updates"], **_NODE_REF_REQUIRED),
    "moveNode": _op({**_NODE_REF, "position": _POSITION}, ["position"], **_NODE_REF_REQUIRED),
    "enableNode": _op(_NODE_REF, **_NODE_REF_REQUIRED),
    "disableNode": _op(_NODE_REF, **_NODE_REF_REQUIRED),
    "addConnection": _op(_CONNECTION, ["source", "target"]),
    "removeConnection": _op(_CONNECTION, ["source", "target"]),
    "updateName": _op({"name": _NON_EMPTY}, ["name"]),
    "updateSettings": _op({"settings": {"type": "object"}}, ["settings"]),
    "addTag": _op({"tag": _NON_EMPTY}, ["tag"]),
    "removeTag": _op({"tag": _NON_EMPTY}, ["tag"]),
}

OPERATION_TYPES = list(OPERATION_SCHEMAS)

FIX_TYPES = ["expression-format", "typeversion-missing", "webhook-missing-path"]
CONFIDENCE_LEVELS = ["high", "medium", "low"]
VALIDATION_PROFILES = ["minimal", "runtime", "ai-friendly", "strict"]

_ID_PARAM = {"type": ["string", "number"], "minLength": 1}

UPDATE_PARTIAL_ARGS_SCHEMA = {
    "type": "object",
    "required": ["id", "operations"],
    "properties": {
        "id": _ID_PARAM,
        # per-operation shape is checked by the engine so that a bad
        # operation becomes a failure record instead of a rejected call
        "operations": {
            "type": "array",
            "items": {"type": "object", "required": ["type"]},
            "minItems": 1,
        },
        "validateOnly": {"type": "boolean"},
        "continueOnError": {"type": "boolean"},
    },
}

VALIDATE_ARGS_SCHEMA = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": _ID_PARAM,
        "options": {
            "type": "object",
            "properties": {
                "validateNodes": {"type": "boolean"},
                "validateConnections": {"type": "boolean"},
                "validateExpressions": {"type": "boolean"},
                "profile": {"enum": VALIDATION_PROFILES},
            },
            "additionalProperties": False,
        },
    },
}

AUTOFIX_ARGS_SCHEMA = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": _ID_PARAM,
        "applyFixes": {"type": "boolean"},
        "fixTypes": {"type": "array", "items": {"enum": FIX_TYPES}},
        "confidenceThreshold": {"enum": CONFIDENCE_LEVELS},
        "maxFixes": {"type": "integer", "minimum": 1},
    },
}

GET_ARGS_SCHEMA = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": _ID_PARAM,
        "mode": {"enum": ["full", "details", "structure", "minimal"]},
    },
}


def validate_args(schema: Dict[str, Any], data: Any, context: str = "") -> Any:
    """
    Check `data` against `schema`; raise ArgumentError listing every problem.
    Returns `data` unchanged on success.
    """
    validator = Draft7Validator(schema)
    problems = []
    for err in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path]):
        where = ".".join(str(p) for p in err.path) or "<root>"
        problems.append(f"{where}: {err.message}")
    if problems:
        prefix = f"{context}: " if context else ""
        raise ArgumentError(f"{prefix}Validation failed - {'; '.join(problems)}", problems)
    return data
