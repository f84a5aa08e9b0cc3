#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
sim/backend.py — in-memory stand-in for the node/file backend.

Serves the same REST surface the panel consumes, with the node registry fed
by ingest(topic, payload) instead of a real MQTT broker. Handy for local
development and for exercising the panel end to end in tests.

Endpoints
---------
GET    /api/nodes                 MAC-deduplicated snapshot, stale → "offline"
DELETE /api/nodes/<id>            deletes every id sharing the MAC
GET    /api/files
DELETE /api/files/<name>
POST   /api/files/<name>/rename   { new_name }
POST   /config | /set-threshold   { node, min, max, ck, area, no }
POST   /ota                       { node, url }
GET    /logs/<id>                 { node, logs }
POST   /upload                    multipart "file" → redirect to /
GET    /files/<name>              download

Run
---
python3 -m sim.backend --port 9999 --uploads /tmp/fleet-uploads --demo
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import Flask, jsonify, redirect, request, send_from_directory

from fleet.config import configure_logging
from fleet.identity import mac_of

log = logging.getLogger("sim.backend")

STALE_AFTER_S = 10.0
MAX_LOG_LINES = 3
TS_FORMAT = "%Y-%m-%d %H:%M:%S"


# ----------------------------- state -----------------------------

@dataclass
class SimNode:
    status: str = ""
    ram_free_bytes: Optional[int] = None
    sd_ok: Optional[bool] = None
    ck: str = ""
    area: str = ""
    no: str = ""
    updated: str = ""
    logs: List[str] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key in ("status", "ram_free_bytes", "sd_ok", "ck", "area", "no", "updated"):
            val = getattr(self, key)
            if val not in (None, ""):
                out[key] = val
        if self.logs:
            out["logs"] = list(self.logs)
        return out


class SimState:
    def __init__(self, upload_dir: Path, clock: Callable[[], float] = time.time):
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.clock = clock
        self._lock = threading.RLock()
        self.nodes: Dict[str, SimNode] = {}
        self.files: Dict[str, Dict[str, Any]] = {}
        self.published: List[Tuple[str, Dict[str, Any]]] = []
        self._load_initial_files()

    def now_str(self) -> str:
        return datetime.fromtimestamp(self.clock()).strftime(TS_FORMAT)

    def _load_initial_files(self) -> None:
        for p in sorted(self.upload_dir.iterdir()):
            if p.is_file():
                mtime = datetime.fromtimestamp(p.stat().st_mtime, tz=timezone.utc)
                self.files[p.name] = self._file_record(p.name, mtime)

    @staticmethod
    def _file_record(name: str, when: datetime) -> Dict[str, Any]:
        return {"name": name, "url": f"/files/{name}", "upload_time": when.isoformat()}

    # -------- ingestion (what the broker subscription would feed) --------

    def ingest(self, topic: str, payload: Any) -> Optional[str]:
        parts = topic.split("/")
        if parts[0] == "nodes" and len(parts) >= 3:
            node_id, sub = parts[1], parts[2]
        elif len(parts) >= 2:
            node_id, sub = parts[0], parts[1]
        else:
            return None

        raw = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        now = self.now_str()

        with self._lock:
            if node_id not in self.nodes:
                self._migrate_locked(node_id)
            info = self.nodes.setdefault(node_id, SimNode())

            if sub == "status":
                try:
                    val = json.loads(raw)
                except ValueError:
                    info.status = raw.decode("utf-8", errors="replace")
                else:
                    if isinstance(val, dict) and "state" in val:
                        info.status = str(val["state"])
                    else:
                        info.status = str(val)
                info.updated = now
            elif sub == "monitor":
                try:
                    val = json.loads(raw)
                except ValueError:
                    val = None
                if isinstance(val, dict):
                    ram = val.get("ram_free_bytes")
                    if isinstance(ram, (int, float)) and not isinstance(ram, bool):
                        info.ram_free_bytes = int(ram)
                    sd = val.get("sd_ok")
                    if isinstance(sd, bool):
                        info.sd_ok = sd
                info.updated = now
            elif sub == "log":
                line = raw.decode("utf-8", errors="replace").strip()
                if line:
                    info.logs.append(line)
                    info.logs = info.logs[-MAX_LOG_LINES:]
                    info.updated = now
        return node_id

    def _migrate_locked(self, node_id: str) -> None:
        """A new id for a known MAC inherits the old id's config and replaces it."""
        mac = mac_of(node_id)
        if not mac:
            return
        for old_id, old in list(self.nodes.items()):
            if old_id != node_id and mac_of(old_id) == mac:
                log.info("[sim] migrating config from %r to %r", old_id, node_id)
                self.nodes[node_id] = SimNode(ck=old.ck, area=old.area, no=old.no)
                del self.nodes[old_id]
                return

    # -------- views --------

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            winners: Dict[str, str] = {}
            for node_id, info in self.nodes.items():
                mac = mac_of(node_id) or node_id
                current = winners.get(mac)
                if current is None or info.updated > self.nodes[current].updated:
                    winners[mac] = node_id

            now = self.clock()
            out: Dict[str, Dict[str, Any]] = {}
            for node_id in winners.values():
                info = self.nodes[node_id]
                if info.updated:
                    try:
                        ts = datetime.strptime(info.updated, TS_FORMAT).timestamp()
                    except ValueError:
                        ts = None
                    if ts is not None and now - ts > STALE_AFTER_S:
                        info = replace(info, status="offline")
                out[node_id] = info.to_json()
            return out

    def delete_node(self, node_id: str) -> Tuple[Dict[str, Any], int]:
        with self._lock:
            mac = mac_of(node_id)
            if not mac:
                if node_id in self.nodes:
                    del self.nodes[node_id]
                    return {"status": "deleted", "node": node_id}, 200
                return {"error": "node not found"}, 404
            victims = [nid for nid in self.nodes if mac_of(nid) == mac]
            for nid in victims:
                del self.nodes[nid]
            if victims:
                return {"status": "deleted", "mac": mac, "count": len(victims)}, 200
            return {"error": "no nodes found for the given ID or MAC"}, 404

    def publish(self, node_id: str, payload: Dict[str, Any]) -> str:
        topic = f"nodes/{node_id}/command"
        with self._lock:
            self.published.append((topic, payload))
        log.info("[sim] publish %s %s", topic, payload)
        return topic


# ----------------------------- app -----------------------------

def _err(msg: str, status: int = 400):
    return jsonify({"error": msg}), status


def create_backend(upload_dir: str, clock: Callable[[], float] = time.time) -> Flask:
    state = SimState(Path(upload_dir), clock=clock)
    app = Flask(__name__)
    app.config["SIM_STATE"] = state

    @app.get("/")
    def index():
        return "fleet backend simulator\n", 200, {"Content-Type": "text/plain; charset=utf-8"}

    @app.get("/api/nodes")
    def api_nodes():
        return jsonify(state.snapshot())

    @app.delete("/api/nodes/<path:node_id>")
    def api_delete_node(node_id: str):
        body, status = state.delete_node(node_id)
        return jsonify(body), status

    @app.get("/api/files")
    def api_files():
        with state._lock:
            return jsonify(list(state.files.values()))

    @app.delete("/api/files/<name>")
    def api_delete_file(name: str):
        clean = os.path.basename(name)
        path = state.upload_dir / clean
        with state._lock:
            if not path.exists():
                return _err("file not found", 404)
            try:
                path.unlink()
            except OSError:
                return _err("failed delete", 500)
            state.files.pop(clean, None)
        return jsonify({"status": "deleted", "name": clean})

    @app.post("/api/files/<name>/rename")
    def api_rename_file(name: str):
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return _err("invalid body")
        new_name = os.path.basename(str(body.get("new_name") or ""))
        if new_name in ("", ".", ".."):
            return _err("invalid new name")
        with state._lock:
            if name not in state.files:
                return _err("file not found", 404)
            try:
                (state.upload_dir / name).rename(state.upload_dir / new_name)
            except OSError:
                return _err("failed to rename file", 500)
            rec = state.files.pop(name)
            rec = dict(rec, name=new_name, url=f"/files/{new_name}")
            state.files[new_name] = rec
        return jsonify(rec)

    @app.post("/upload")
    def upload():
        f = request.files.get("file")
        if f is None or not f.filename:
            return "file required", 400
        clean = os.path.basename(f.filename)
        if not clean:
            return "file required", 400
        f.save(str(state.upload_dir / clean))
        with state._lock:
            state.files[clean] = state._file_record(clean, datetime.now(timezone.utc))
        return redirect("/")

    @app.get("/files/<name>")
    def download(name: str):
        return send_from_directory(state.upload_dir, os.path.basename(name))

    def _config():
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not body.get("node"):
            return _err("invalid body")
        node_id = str(body["node"])
        try:
            lo = float(body.get("min", 0))
            hi = float(body.get("max", 0))
        except (TypeError, ValueError):
            return _err("invalid body")
        ck, area, no = (str(body.get(k) or "") for k in ("ck", "area", "no"))
        with state._lock:
            info = state.nodes.get(node_id)
            if info is not None:
                info.ck, info.area, info.no = ck, area, no
        topic = state.publish(node_id, {"cmd": "set_threshold", "min": lo, "max": hi,
                                        "ck": ck, "area": area, "no": no})
        return jsonify({"status": "ok", "topic": topic})

    app.add_url_rule("/config", "config", _config, methods=["POST"])
    app.add_url_rule("/set-threshold", "set_threshold", _config, methods=["POST"])

    @app.post("/ota")
    def ota():
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not body.get("node"):
            return _err("invalid body")
        topic = state.publish(str(body["node"]), {"cmd": "ota", "url": str(body.get("url") or "")})
        return jsonify({"status": "OTA triggered", "topic": topic})

    @app.get("/logs/<path:node_id>")
    def logs(node_id: str):
        with state._lock:
            info = state.nodes.get(node_id)
            if info is None:
                return _err("node not found", 404)
            return jsonify({"node": node_id, "logs": list(info.logs)})

    return app


# ----------------------------- demo data -----------------------------

DEMO_NODES = (
    ("site-A1-AABBCCDDEEFF", "running", 48_000, True),
    ("site-A2-0011223344AA", "online", 1_200_000, None),
    ("lab-B1-DEADBEEF0001", "offline", 512, False),
)


def seed_demo(state: SimState) -> None:
    for node_id, status, ram, sd in DEMO_NODES:
        state.ingest(f"nodes/{node_id}/status", json.dumps({"state": status}))
        monitor: Dict[str, Any] = {"ram_free_bytes": ram}
        if sd is not None:
            monitor["sd_ok"] = sd
        state.ingest(f"nodes/{node_id}/monitor", json.dumps(monitor))
        state.ingest(f"nodes/{node_id}/log", f"boot ok ({status})")


def main():
    ap = argparse.ArgumentParser(description="Fleet backend simulator")
    ap.add_argument("--host", default=os.environ.get("FLEET_SIM_HOST", "127.0.0.1"))
    ap.add_argument("--port", type=int, default=int(os.environ.get("FLEET_SIM_PORT", "9999")))
    ap.add_argument("--uploads", default=os.environ.get("FLEET_SIM_UPLOADS", "static/uploads"))
    ap.add_argument("--demo", action="store_true", help="Seed a few demo nodes")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    configure_logging("DEBUG" if args.debug else "INFO")
    app = create_backend(args.uploads)
    if args.demo:
        seed_demo(app.config["SIM_STATE"])
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
