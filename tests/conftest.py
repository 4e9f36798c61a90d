import copy
from typing import Any, Dict, List, Tuple

import pytest

from flowpatch.remote.client import N8nApiError


class MemoryStore:
    """In-memory WorkflowStore that records every write."""

    def __init__(self, workflows: Dict[str, Dict[str, Any]]):
        self.workflows = {k: copy.deepcopy(v) for k, v in workflows.items()}
        self.writes: List[Tuple[str, Dict[str, Any]]] = []

    def fetch_graph(self, workflow_id: str) -> Dict[str, Any]:
        if workflow_id not in self.workflows:
            raise N8nApiError(f"Resource not found: /workflows/{workflow_id}", 404)
        return copy.deepcopy(self.workflows[workflow_id])

    def replace_graph(self, workflow_id: str, workflow: Dict[str, Any]) -> Dict[str, Any]:
        self.writes.append((workflow_id, copy.deepcopy(workflow)))
        self.workflows[workflow_id] = copy.deepcopy(workflow)
        return workflow


def make_node(node_id: str, name: str, node_type: str = "n8n-nodes-base.set", **extra) -> Dict[str, Any]:
    node = {
        "id": node_id,
        "name": name,
        "type": node_type,
        "typeVersion": 1,
        "position": [0, 0],
        "parameters": {},
    }
    node.update(extra)
    return node


@pytest.fixture
def simple_graph() -> Dict[str, Any]:
    return {
        "id": "wf1",
        "name": "Simple",
        "nodes": [
            make_node("t1", "Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("s1", "Set", "n8n-nodes-base.set"),
            make_node("h1", "HTTP", "n8n-nodes-base.httpRequest"),
        ],
        "connections": {
            "Trigger": {"main": [[{"node": "Set", "type": "main", "index": 0}]]},
            "Set": {"main": [[{"node": "HTTP", "type": "main", "index": 0}]]},
        },
        "settings": {"executionOrder": "v1", "timezone": "UTC"},
        "tags": [{"id": "7", "name": "prod"}],
    }


@pytest.fixture
def store(simple_graph) -> MemoryStore:
    return MemoryStore({"wf1": simple_graph})
