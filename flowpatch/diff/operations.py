# flowpatch/diff/operations.py
"""
Diff operations: one frozen dataclass per operation kind.

Raw operation dicts (as an agent sends them) are checked against
OPERATION_SCHEMAS and turned into the matching dataclass by
`parse_operation`. Anything that cannot be parsed raises OperationError,
which the engine records as a per-operation failure.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from jsonschema import Draft7Validator

from flowpatch.structural.schema import OPERATION_SCHEMAS


class OperationError(Exception):
    """A single diff operation could not be applied."""


@dataclass(frozen=True)
class NodeRef:
    node_id: Optional[str] = None
    node_name: Optional[str] = None

    @property
    def label(self) -> str:
        return str(self.node_id or self.node_name)


@dataclass(frozen=True)
class AddNode:
    kind: ClassVar[str] = "addNode"
    node: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoveNode:
    kind: ClassVar[str] = "removeNode"
    ref: NodeRef = NodeRef()


@dataclass(frozen=True)
class UpdateNode:
    kind: ClassVar[str] = "updateNode"
    ref: NodeRef = NodeRef()
    updates: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MoveNode:
    kind: ClassVar[str] = "moveNode"
    ref: NodeRef = NodeRef()
    position: Tuple[float, float] = (0, 0)


@dataclass(frozen=True)
class EnableNode:
    kind: ClassVar[str] = "enableNode"
    ref: NodeRef = NodeRef()


@dataclass(frozen=True)
class DisableNode:
    kind: ClassVar[str] = "disableNode"
    ref: NodeRef = NodeRef()


@dataclass(frozen=True)
class ConnectionSpec:
    source: str
    target: str
    source_output: str = "main"
    target_input: str = "main"
    source_index: int = 0
    target_index: int = 0

    @property
    def label(self) -> str:
        return f"{self.source} -> {self.target}"


@dataclass(frozen=True)
class AddConnection:
    kind: ClassVar[str] = "addConnection"
    connection: ConnectionSpec = None


@dataclass(frozen=True)
class RemoveConnection:
    kind: ClassVar[str] = "removeConnection"
    connection: ConnectionSpec = None


@dataclass(frozen=True)
class UpdateName:
    kind: ClassVar[str] = "updateName"
    name: str = ""


@dataclass(frozen=True)
class UpdateSettings:
    kind: ClassVar[str] = "updateSettings"
    settings: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AddTag:
    kind: ClassVar[str] = "addTag"
    tag: str = ""


@dataclass(frozen=True)
class RemoveTag:
    kind: ClassVar[str] = "removeTag"
    tag: str = ""


DiffOperation = Union[
    AddNode, RemoveNode, UpdateNode, MoveNode, EnableNode, DisableNode,
    AddConnection, RemoveConnection, UpdateName, UpdateSettings, AddTag, RemoveTag,
]


def _ref(raw: Dict[str, Any]) -> NodeRef:
    return NodeRef(node_id=raw.get("nodeId"), node_name=raw.get("nodeName"))


def _connection(raw: Dict[str, Any]) -> ConnectionSpec:
    return ConnectionSpec(
        source=raw["source"],
        target=raw["target"],
        source_output=raw.get("sourceOutput", "main"),
        target_input=raw.get("targetInput", "main"),
        source_index=raw.get("sourceIndex", 0),
        target_index=raw.get("targetIndex", 0),
    )


_BUILDERS = {
    "addNode": lambda r: AddNode(node=r["node"]),
    "removeNode": lambda r: RemoveNode(ref=_ref(r)),
    "updateNode": lambda r: UpdateNode(ref=_ref(r), updates=r["updates"]),
    "moveNode": lambda r: MoveNode(ref=_ref(r), position=tuple(r["position"])),
    "enableNode": lambda r: EnableNode(ref=_ref(r)),
    "disableNode": lambda r: DisableNode(ref=_ref(r)),
    "addConnection": lambda r: AddConnection(connection=_connection(r)),
    "removeConnection": lambda r: RemoveConnection(connection=_connection(r)),
    "updateName": lambda r: UpdateName(name=r["name"]),
    "updateSettings": lambda r: UpdateSettings(settings=r["settings"]),
    "addTag": lambda r: AddTag(tag=r["tag"]),
    "removeTag": lambda r: RemoveTag(tag=r["tag"]),
}


def parse_operation(raw: Any) -> DiffOperation:
    """Turn a raw operation dict into its dataclass or raise OperationError."""
    if not isinstance(raw, dict):
        raise OperationError("Operation must be an object")
    op_type = raw.get("type")
    schema = OPERATION_SCHEMAS.get(op_type) if isinstance(op_type, str) else None
    if schema is None:
        raise OperationError(f"Unknown operation type: {op_type}")

    errors = sorted(Draft7Validator(schema).iter_errors(raw), key=lambda e: [str(p) for p in e.path])
    if errors:
        err = errors[0]
        where = ".".join(str(p) for p in err.path)
        detail = f"{where}: {err.message}" if where else err.message
        raise OperationError(f"Invalid {op_type} operation - {detail}")

    return _BUILDERS[op_type](raw)
