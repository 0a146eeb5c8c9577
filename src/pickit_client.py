"""
pickit_client.py — Talks to the rule-file backend.

The backend owns the .nip files on disk: it lists files in a pickit folder,
returns parsed rule records, and applies single-line updates, deletes and
reorders by rule id. It also serves the item taxonomy tables the classifier
uses for naming.

All calls are blocking; the editor runs them in an executor.
"""

import logging
from typing import Any, List, Optional

import requests

from config import PICKIT_BACKEND_URL, PICKIT_HTTP_TIMEOUT, PICKIT_USER_AGENT

logger = logging.getLogger(__name__)


class PickitClientError(Exception):
    """A backend call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PickitClient:
    """Thin requests.Session wrapper around the /api/pickit endpoints."""

    def __init__(self, base_url: str = PICKIT_BACKEND_URL,
                 timeout: float = PICKIT_HTTP_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": PICKIT_USER_AGENT})

    def _request(self, method: str, endpoint: str, fallback: str,
                 params: Optional[dict] = None, body: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            resp = self._session.request(method, url, params=params, json=body,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Pickit backend unreachable ({endpoint}): {e}")
            raise PickitClientError(f"{fallback}: {e}") from e

        if not resp.ok:
            message = fallback
            try:
                data = resp.json()
                if isinstance(data, dict) and data.get("error"):
                    message = str(data["error"])
            except ValueError:
                pass
            logger.warning(f"Pickit backend {endpoint}: HTTP {resp.status_code} {message}")
            raise PickitClientError(message, resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    # ── Files ────────────────────────────────────────────────

    def list_files(self, path: str) -> List[str]:
        """Names of the .nip files in a pickit folder."""
        data = self._request("GET", "/api/pickit/files", "Failed to load file list",
                             params={"path": path})
        names = []
        for entry in data or []:
            name = entry.get("name", "") if isinstance(entry, dict) else str(entry)
            if name:
                names.append(name)
        return names

    def load_rules(self, path: str, file_name: str) -> List[dict]:
        data = self._request("GET", "/api/pickit/files", "Failed to load file",
                             params={"path": path, "file": file_name})
        return data if isinstance(data, list) else []

    # ── Taxonomy tables ──────────────────────────────────────

    def load_items(self) -> list:
        return self._request("GET", "/api/pickit/items", "Failed to load items") or []

    def load_item_types(self) -> dict:
        return self._request("GET", "/api/pickit/item-types", "Failed to load item types") or {}

    def load_set_mappings(self) -> dict:
        return self._request("GET", "/api/pickit/set-mappings", "Failed to load set mappings") or {}

    def load_unique_mappings(self) -> dict:
        return self._request("GET", "/api/pickit/unique-mappings",
                             "Failed to load unique mappings") or {}

    # ── Rule mutations ───────────────────────────────────────

    def update_rule(self, path: str, file_name: str, rule_id: str, line: str):
        """Replace one rule's line; `line` is the encoded (on-disk) form."""
        self._request("POST", "/api/pickit/files/rules/update", "Update failed",
                      params={"path": path, "file": file_name, "id": rule_id},
                      body={"newNipLine": line})

    def reorder_rules(self, path: str, file_name: str, ordered_ids: List[str]):
        self._request("POST", "/api/pickit/files/rules/reorder", "Reorder failed",
                      params={"path": path, "file": file_name},
                      body={"orderedIds": list(ordered_ids)})

    def delete_rule(self, path: str, file_name: str, rule_id: str):
        self._request("POST", "/api/pickit/files/rules/delete", "Delete failed",
                      params={"path": path, "file": file_name, "id": rule_id})
