#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/backend.py — HTTP client for the node/file backend.

Endpoints consumed
------------------
GET    /api/files                     → [FileEntry]
POST   /api/files/{name}/rename       { new_name }
DELETE /api/files/{name}
GET    /api/nodes                     → { NodeId: NodeInfo }
DELETE /api/nodes/{id}
POST   /config                        ConfigPayload
POST   /ota                           { node, url }
GET    /logs/{id}                     → { logs: [str] }
POST   /upload                        multipart field "file" → 302 (not followed)

Every path segment taken from user data goes through encode_component.
Non-2xx answers raise BackendError carrying the body's "error" field;
connection problems raise TransportError.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .codec import join_path
from .errors import BackendError, TransportError
from .models import ConfigPayload, FileEntry, NodeInfo, OtaPayload, parse_files, parse_nodes

log = logging.getLogger("fleet.backend")

CONFIG_PATH = "/config"


@dataclass(frozen=True)
class UploadResult:
    name: str
    redirected: bool
    status: int


def _error_field(resp: requests.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


class BackendClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    # -------- plumbing --------

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            resp = self.session.request(method.upper(), self.url(path), **kwargs)
        except requests.RequestException as exc:
            log.debug("[backend] %s %s failed: %s", method, path, exc)
            raise TransportError(str(exc)) from exc
        # with allow_redirects=False the redirect itself is the answer
        held = resp.is_redirect and not kwargs.get("allow_redirects", True)
        if not (200 <= resp.status_code < 300 or held):
            raise BackendError(resp.status_code, _error_field(resp))
        return resp

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = self._send(method, path, **kwargs)
        try:
            return resp.json()
        except ValueError:
            raise BackendError(resp.status_code, "non-JSON response")

    # -------- reads --------

    def list_nodes(self) -> Dict[str, NodeInfo]:
        data = self._json("GET", "/api/nodes")
        try:
            return parse_nodes(data if data is not None else {})
        except ValueError as exc:
            raise BackendError(200, str(exc)) from exc

    def list_files(self) -> List[FileEntry]:
        data = self._json("GET", "/api/files")
        try:
            return parse_files(data)
        except ValueError as exc:
            raise BackendError(200, str(exc)) from exc

    def fetch_logs(self, node_id: str) -> List[str]:
        data = self._json("GET", join_path("logs", node_id))
        logs = data.get("logs") if isinstance(data, dict) else None
        return [str(l) for l in logs] if isinstance(logs, list) else []

    # -------- mutations --------

    def delete_node(self, node_id: str) -> Any:
        return self._json("DELETE", join_path("api", "nodes", node_id))

    def delete_file(self, name: str) -> Any:
        return self._json("DELETE", join_path("api", "files", name))

    def rename_file(self, name: str, new_name: str) -> Any:
        return self._json(
            "POST", join_path("api", "files", name, "rename"), json={"new_name": new_name}
        )

    def push_config(self, payload: ConfigPayload) -> Any:
        return self._json("POST", CONFIG_PATH, json=payload.to_json())

    def trigger_ota(self, payload: OtaPayload) -> Any:
        return self._json("POST", "/ota", json=payload.to_json())

    def upload(self, path: str) -> UploadResult:
        name = os.path.basename(path)
        with open(path, "rb") as fh:
            resp = self._send("POST", "/upload", files={"file": (name, fh)}, allow_redirects=False)
        return UploadResult(name=name, redirected=resp.is_redirect, status=resp.status_code)
