# flowpatch/remote/client.py
"""
Thin client for the n8n public REST API (`/api/v1`).

Only whole-document operations are used: a workflow is fetched with GET and
written back with PUT. There is no patch endpoint and no concurrency token,
so the last full write wins.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from flowpatch.utils.logger import get_logger

log = get_logger("remote")

# Fields the public API accepts on PUT /workflows/{id}; everything else
# (id, active, tags, timestamps, ...) is read-only there and rejected.
WRITABLE_FIELDS = ("name", "nodes", "connections", "settings", "staticData")


class N8nApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def normalize_base_url(base_url: str) -> str:
    """'https://n8n.example.com/' -> 'https://n8n.example.com/api/v1'"""
    url = base_url.rstrip("/")
    if not url.endswith("/api/v1"):
        url = f"{url}/api/v1"
    return url


def _root_url(base_url: str) -> str:
    url = base_url.rstrip("/")
    if url.endswith("/api/v1"):
        url = url[: -len("/api/v1")]
    return url


class N8nApiClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = normalize_base_url(base_url)
        self.root_url = _root_url(base_url)
        log.debug("n8n API client base URL: %s", self.base_url)
        self._http = httpx.Client(
            base_url=self.base_url,
            headers={"X-N8N-API-KEY": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "N8nApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------- transport ----------

    def _request(self, method: str, path: str, **kwargs) -> Any:
        log.debug("%s %s", method, path)
        try:
            resp = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise N8nApiError(f"Network error: {e}") from e

        if resp.status_code >= 400:
            raise self._error_for(resp, path)
        if not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _error_for(resp: httpx.Response, path: str) -> N8nApiError:
        status = resp.status_code
        try:
            data = resp.json()
        except ValueError:
            data = resp.text
        log.error("API error %s on %s: %s", status, path, data)

        if status == 401:
            return N8nApiError("Authentication failed. Check your N8N_API_KEY.", status, data)
        if status == 404:
            return N8nApiError(f"Resource not found: {path}", status, data)
        if status == 422:
            return N8nApiError(f"Validation error: {json.dumps(data)}", status, data)
        message = data.get("message") if isinstance(data, dict) else None
        return N8nApiError(f"API Error {status}: {message or resp.reason_phrase}", status, data)

    # ---------- workflows ----------

    def get_workflow(self, workflow_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/workflows/{workflow_id}")

    def update_workflow(self, workflow_id: str, workflow: Dict[str, Any]) -> Dict[str, Any]:
        body = {k: workflow[k] for k in WRITABLE_FIELDS if k in workflow}
        return self._request("PUT", f"/workflows/{workflow_id}", json=body)

    def create_workflow(self, workflow: Dict[str, Any]) -> Dict[str, Any]:
        body = {k: workflow[k] for k in WRITABLE_FIELDS if k in workflow}
        return self._request("POST", "/workflows", json=body)

    def delete_workflow(self, workflow_id: str) -> None:
        self._request("DELETE", f"/workflows/{workflow_id}")

    def list_workflows(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        active: Optional[bool] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if limit:
            params["limit"] = limit
        if cursor:
            params["cursor"] = cursor
        if active is not None:
            params["active"] = "true" if active else "false"
        if tags:
            params["tags"] = ",".join(tags)
        data = self._request("GET", "/workflows", params=params) or {}
        next_cursor = data.get("nextCursor")
        return {"data": data.get("data") or [], "nextCursor": next_cursor, "hasMore": bool(next_cursor)}

    def health_check(self) -> Dict[str, Any]:
        """
        GET <root>/healthz; on older instances without it, fall back to
        listing a single workflow through the API.
        """
        try:
            resp = self._http.get(f"{self.root_url}/healthz", timeout=5.0)
            if resp.status_code == 200 and resp.json().get("status") == "ok":
                data = resp.json()
                return {"status": "ok", "version": data.get("version"), "instanceId": data.get("instanceId")}
        except (httpx.HTTPError, ValueError) as e:
            log.debug("healthz unavailable: %s", e)

        self._request("GET", "/workflows", params={"limit": 1})
        return {"status": "ok"}

    # ---------- WorkflowStore protocol ----------

    def fetch_graph(self, workflow_id: str) -> Dict[str, Any]:
        return self.get_workflow(workflow_id)

    def replace_graph(self, workflow_id: str, workflow: Dict[str, Any]) -> Dict[str, Any]:
        return self.update_workflow(workflow_id, workflow)
