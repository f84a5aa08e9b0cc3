#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ui/dashboard.py — Fleet panel web dashboard (single file).

Features
--------
- Overview: online / offline counts, backend URL
- Nodes: cards grouped by liveness, labelled "site/area - AA:BB:CC:DD:EE:FF"
- Files: download, copy link, rename, delete, upload
- Actions (one delegated click handler over data-action attributes):
  • OTA, Set Threshold, Edit, Logs, Delete node
  • Copy link, Rename file, Delete file

The page asks its prompts in the browser, then posts all answers in one
request; the server replays them through the same dispatcher the terminal
client uses.

Run
---
python3 -m ui.dashboard --backend http://127.0.0.1:9999 --port 8090
"""

from __future__ import annotations

import argparse
import os
import re
import tempfile
import time
from collections import deque
from typing import Any, Deque, Dict, Optional

from flask import Flask, jsonify, make_response, request

from fleet.backend import BackendClient
from fleet.codec import escape_markup
from fleet.config import PanelConfig, configure_logging, load_config
from fleet.errors import ConfigError, UnknownAction
from fleet.panel import Panel
from fleet.render import files_html, logs_html, nodes_html, render_logs
from fleet.workflows import AnswerPrompter, Cancelled, Failed, Rejected, Succeeded

_SLOT_RE = re.compile(r"__([A-Z_]+)__")

# ----------------- Helpers -----------------


def _ok(data: Any, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _err(msg: str, status: int = 400, **extra):
    return jsonify({"ok": False, "error": msg, **extra}), status


class EventLog:
    """Notifier that keeps the most recent messages for the page's toast area."""

    def __init__(self, maxlen: int = 50):
        self.events: Deque[Dict[str, Any]] = deque(maxlen=maxlen)

    def notify(self, message: str, ok: bool = True) -> None:
        self.events.appendleft({"message": message, "ok": ok, "ts": int(time.time() * 1000)})


def _outcome_response(outcome):
    if isinstance(outcome, Succeeded):
        return _ok({"outcome": "succeeded", "message": outcome.message, "refresh": outcome.refresh})
    if isinstance(outcome, Cancelled):
        return _ok({"outcome": "cancelled", "step": outcome.step})
    if isinstance(outcome, Rejected):
        status = 409 if outcome.reason == "already in progress" else 400
        return _err(outcome.reason, status=status, outcome="rejected")
    if isinstance(outcome, Failed):
        return _err(outcome.message, status=502, outcome="failed", backend_status=outcome.status)
    return _err("unexpected outcome", status=500)


# ----------------- App factory -----------------


def create_app(
    config: Optional[PanelConfig] = None,
    client: Optional[BackendClient] = None,
    auto_start: bool = True,
) -> Flask:
    config = config or load_config()
    events = EventLog()
    panel = Panel(config, client=client, notifier=events)

    app = Flask(__name__)
    app.config["PANEL"] = panel
    app.config["EVENTS"] = events

    if auto_start:
        panel.start()

    # ----------------- JSON APIs -----------------

    @app.get("/api/health")
    def api_health():
        return _ok({
            "backend": config.backend_url,
            "polling": panel.poller.running,
            "nodes_generation": panel.nodes.generation,
            "files_generation": panel.files.generation,
        })

    @app.get("/api/view")
    def api_view():
        view = panel.nodes_view()
        rows = panel.file_rows()
        return _ok({
            "nodes": view.to_json(),
            "files": [
                {"name": r.raw_name, "url": r.url, "link": r.link, "uploaded": r.uploaded}
                for r in rows
            ],
            "nodes_html": nodes_html(view),
            "files_html": files_html(rows),
        })

    @app.post("/api/refresh")
    def api_refresh():
        panel.refresh()
        return _ok({"nodes": len(panel.nodes), "files": len(panel.files)})

    @app.get("/api/events")
    def api_events():
        return _ok(list(events.events))

    @app.get("/api/form/<action>")
    def api_form(action: str):
        target = request.args.get("target", "")
        try:
            form = panel.dispatcher.describe(action, target)
        except UnknownAction as e:
            return _err(str(e), status=404)
        if form.get("error"):
            return _err(form["error"], status=404)
        return _ok(form)

    @app.post("/api/dispatch/<action>")
    def api_dispatch(action: str):
        """
        Body:
        {
          "target": "<node id or file name>",
          "answers": { "<step name>": "<value>", ... },   # missing step = backed out
          "confirm": true|false
        }
        """
        if not request.is_json:
            return _err("expected JSON body")
        body = request.get_json() or {}
        target = body.get("target")
        if not isinstance(target, str) or not target:
            return _err("missing 'target'")
        answers = body.get("answers") or {}
        if not isinstance(answers, dict):
            return _err("'answers' must be an object")
        if action in ("logs", "copy-link", "upload"):
            return _err(f"use the dedicated endpoint for {action}")
        prompter = AnswerPrompter(answers, confirmed=bool(body.get("confirm")))
        try:
            outcome = panel.dispatch(action, target, prompter)
        except UnknownAction as e:
            return _err(str(e), status=404)
        return _outcome_response(outcome)

    @app.get("/api/logs/<path:target>")
    def api_logs(target: str):
        outcome = panel.dispatch("logs", target, AnswerPrompter())
        if not isinstance(outcome, Succeeded):
            return _outcome_response(outcome)
        lines = render_logs(outcome.data or ())
        return _ok({"node": escape_markup(target), "lines": list(lines), "html": logs_html(lines)})

    @app.post("/api/upload")
    def api_upload():
        f = request.files.get("file")
        if f is None or not f.filename:
            return _err("file required")
        name = os.path.basename(f.filename)
        if not name:
            return _err("file required")
        with tempfile.TemporaryDirectory(prefix="fleet-upload-") as tmp:
            local = os.path.join(tmp, name)
            f.save(local)
            outcome = panel.dispatch("upload", local, AnswerPrompter({"path": local}))
        return _outcome_response(outcome)

    # ----------------- HTML UI -----------------

    @app.get("/")
    def index():
        view = panel.nodes_view()
        slots = {
            "BACKEND": escape_markup(config.backend_url),
            "ONLINE": str(view.online_count),
            "OFFLINE": str(view.offline_count),
            "NODES": nodes_html(view),
            "FILES": files_html(panel.file_rows()),
            "POLL_MS": str(int(config.node_interval * 1000)),
        }
        # single pass, so placeholders inside node/file names stay literal
        html = _SLOT_RE.sub(lambda m: slots.get(m.group(1), m.group(0)), _INDEX_HTML)
        resp = make_response(html)
        resp.headers["Content-Type"] = "text/html; charset=utf-8"
        return resp

    return app


_INDEX_HTML = r"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<title>IoT OTA &amp; Monitor</title>
<meta name="viewport" content="width=device-width, initial-scale=1" />
<link rel="icon" href="data:,">
<style>
:root {
  --bg: #0b0f14; --panel: #121822; --muted2: #6c7a8a; --text: #e7eef7;
  --good: #2ecc71; --bad: #e74c3c; --chip: #1a2330;
}
* { box-sizing: border-box; }
body { margin: 0; background: var(--bg); color: var(--text);
  font-family: ui-sans-serif, system-ui, -apple-system, "Segoe UI", Roboto, Arial; }
header { padding: 16px 20px; border-bottom: 1px solid #1c2430; }
h1 { margin: 0; font-size: 20px; }
h2 { font-size: 16px; color: #cfe7ff; }
.container { padding: 16px 20px; display: grid; grid-template-columns: 2fr 1fr; gap: 16px; }
.card { background: var(--panel); border: 1px solid #1a2533; border-radius: 12px; padding: 12px; margin-bottom: 10px; }
.card.offline { opacity: 0.75; }
.row { display: flex; gap: 8px; align-items: center; flex-wrap: wrap; }
.kpi { background: var(--chip); padding: 8px 12px; border-radius: 10px; border: 1px solid #243140; }
.btn { border: 1px solid #2a3a4f; background: #192434; color: var(--text); padding: 4px 10px; border-radius: 8px; cursor: pointer; }
.btn.act-delete-node, .btn.act-delete-file { background: #3a1010; border-color: #5b1a1a; }
.dot { width: 10px; height: 10px; border-radius: 50%; display: inline-block; }
.dot.good { background: var(--good); } .dot.bad { background: var(--bad); }
.mono { font-family: ui-monospace, Menlo, Consolas, monospace; font-size: 13px; }
.small { font-size: 12px; color: var(--muted2); }
.file { padding: 6px 0; border-bottom: 1px solid #1f2a39; }
#toast { position: fixed; bottom: 16px; right: 16px; max-width: 420px; }
#toast div { background: #13314d; padding: 8px 12px; border-radius: 8px; margin-top: 6px; }
#toast div.bad { background: #3a1010; }
#logModal { display: none; position: fixed; inset: 0; background: rgba(0,0,0,.6); align-items: center; justify-content: center; }
#logModal.open { display: flex; }
</style>
</head>
<body>
<header>
  <h1>IoT OTA &amp; Monitor</h1>
  <div class="small">Backend: __BACKEND__</div>
</header>
<div class="container">
  <div>
    <div class="row" style="margin-bottom:10px;">
      <div class="kpi">Online: <b id="k_on">__ONLINE__</b></div>
      <div class="kpi">Offline: <b id="k_off">__OFFLINE__</b></div>
      <button class="btn" onclick="refresh(true)">Refresh</button>
    </div>
    <div id="nodesArea">__NODES__</div>
  </div>
  <div>
    <div class="card">
      <h2>Upload firmware / asset</h2>
      <form id="uploadForm" class="row">
        <input id="fileInput" type="file" name="file" />
        <button class="btn" type="submit">Upload</button>
      </form>
      <div id="uploadMsg" class="small"></div>
    </div>
    <div class="card">
      <h2>Files</h2>
      <div id="fileList">__FILES__</div>
    </div>
  </div>
</div>
<div id="logModal"><div class="card" style="min-width:360px">
  <h2>Logs: <span id="modalNode"></span></h2>
  <div id="modalBody"></div>
  <button class="btn" onclick="closeModal()">Close</button>
</div></div>
<div id="toast"></div>
<script>
let FILE_LINKS = {};

function toast(msg, ok) {
  const el = document.createElement('div');
  if (!ok) el.className = 'bad';
  el.textContent = msg;
  document.getElementById('toast').appendChild(el);
  setTimeout(() => el.remove(), 4000);
}

async function api(url, opts) {
  const r = await fetch(url, opts || {});
  const j = await r.json();
  if (!j.ok) throw new Error(j.error || 'unknown');
  return j.data;
}

async function refresh(force) {
  try {
    if (force) await api('/api/refresh', {method: 'POST'});
    const v = await api('/api/view');
    document.getElementById('nodesArea').innerHTML = v.nodes_html;
    document.getElementById('fileList').innerHTML = v.files_html;
    document.getElementById('k_on').textContent = v.nodes.online_count;
    document.getElementById('k_off').textContent = v.nodes.offline_count;
    FILE_LINKS = {};
    v.files.forEach(f => { FILE_LINKS[f.name] = f.link; });
  } catch (err) {
    console.error(err);
  }
}

async function copyLink(url) {
  try {
    await navigator.clipboard.writeText(url);
    toast('Link copied: ' + url, true);
    return;
  } catch (err) { /* fall through */ }
  const ta = document.createElement('textarea');
  ta.value = url;
  document.body.appendChild(ta);
  ta.select();
  try {
    document.execCommand('copy') ? toast('Link copied: ' + url, true) : toast('Failed to copy link.', false);
  } catch (err) {
    toast('Failed to copy link.', false);
  }
  ta.remove();
}

async function openLogs(target) {
  document.getElementById('modalNode').textContent = target;
  const body = document.getElementById('modalBody');
  body.textContent = 'Loading...';
  document.getElementById('logModal').classList.add('open');
  try {
    const d = await api('/api/logs/' + encodeURIComponent(target));
    body.innerHTML = d.html;
  } catch (err) {
    body.innerHTML = '<div class="small">No logs</div>';
  }
}

function closeModal() { document.getElementById('logModal').classList.remove('open'); }

async function runAction(action, target) {
  let form;
  try {
    form = await api('/api/form/' + action + '?target=' + encodeURIComponent(target));
  } catch (err) { toast(err.message, false); return; }
  if (form.confirm && !confirm(form.confirm)) return;
  const answers = {};
  for (const step of form.steps) {
    const v = prompt(step.label, step.default === null ? '' : step.default);
    if (v === null) return;
    answers[step.name] = v;
  }
  try {
    const d = await api('/api/dispatch/' + action, {
      method: 'POST', headers: {'content-type': 'application/json'},
      body: JSON.stringify({target, answers, confirm: true})
    });
    if (d.outcome === 'succeeded') toast(d.message, true);
    if (d.refresh) setTimeout(refresh, 800);
  } catch (err) {
    toast(err.message, false);
  }
}

document.addEventListener('click', (e) => {
  const btn = e.target.closest('[data-action]');
  if (!btn) return;
  const action = btn.dataset.action;
  const target = decodeURIComponent(btn.dataset.target || '');
  if (action === 'copy-link') return copyLink(FILE_LINKS[target] || '');
  if (action === 'logs') return openLogs(target);
  runAction(action, target);
});

document.getElementById('uploadForm').addEventListener('submit', async (e) => {
  e.preventDefault();
  const file = document.getElementById('fileInput').files[0];
  if (!file) { toast('Choose a file first', false); return; }
  const fd = new FormData();
  fd.append('file', file);
  const msg = document.getElementById('uploadMsg');
  msg.textContent = 'Uploading...';
  try {
    const d = await api('/api/upload', {method: 'POST', body: fd});
    msg.textContent = d.message;
    setTimeout(refresh, 800);
  } catch (err) {
    msg.textContent = 'Upload error';
  }
});

refresh(false);
setInterval(refresh, __POLL_MS__);
</script>
</body>
</html>
"""


# ----------------- CLI entry -----------------


def main():
    ap = argparse.ArgumentParser(description="Fleet panel dashboard")
    ap.add_argument("--host", default=os.environ.get("FLEET_UI_HOST", "127.0.0.1"))
    ap.add_argument(
        "--port", type=int, default=int(os.environ.get("FLEET_UI_PORT", "8090"))
    )
    ap.add_argument("--config", help="YAML config file (see fleet/config.py)")
    ap.add_argument("--backend", help="Backend base URL (e.g. http://127.0.0.1:9999)")
    ap.add_argument("--public-origin", help="Origin used in copied file links")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    try:
        config = load_config(args.config).with_overrides(
            backend_url=args.backend, public_origin=args.public_origin
        )
    except ConfigError as e:
        ap.error(str(e))
    configure_logging("DEBUG" if args.debug else config.log_level)
    app = create_app(config)
    app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=False)


if __name__ == "__main__":
    main()
