# flowpatch/remote/store.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Protocol

from jsonschema import ValidationError, validate

from flowpatch.remote.client import N8nApiError
from flowpatch.structural.schema import WORKFLOW_DOCUMENT_SCHEMA
from flowpatch.utils.io import read_json, write_json
from flowpatch.utils.logger import get_logger

log = get_logger("store")


class WorkflowStore(Protocol):
    """Whole-document access to workflows; implemented by N8nApiClient and FileWorkflowStore."""

    def fetch_graph(self, workflow_id: str) -> Dict[str, Any]: ...

    def replace_graph(self, workflow_id: str, workflow: Dict[str, Any]) -> Dict[str, Any]: ...


class FileWorkflowStore:
    """
    A workflow export on disk. The id argument is ignored for reads except
    for reporting; a single file holds a single workflow.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.writes = 0

    def fetch_graph(self, workflow_id: str) -> Dict[str, Any]:
        if not self.path.exists():
            raise N8nApiError(f"Resource not found: {self.path}", 404)
        wf = read_json(self.path)
        try:
            validate(instance=wf, schema=WORKFLOW_DOCUMENT_SCHEMA)
        except ValidationError as e:
            raise N8nApiError(f"Validation error: {e.message}", 422) from e
        wf.setdefault("id", workflow_id)
        return wf

    def replace_graph(self, workflow_id: str, workflow: Dict[str, Any]) -> Dict[str, Any]:
        write_json(self.path, workflow)
        self.writes += 1
        log.info("wrote workflow %s to %s", workflow_id, self.path)
        return workflow
