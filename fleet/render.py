#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/render.py — pure projections from snapshots to presentational records.

Nothing here does I/O or touches a store: callers pass in a read-only view
and get back frozen dataclasses (plus HTML fragments built from them). Every
user- or device-controlled string is escaped on the way in, and every action
a card offers is an ActionDescriptor naming the action and its target; the
front end resolves it through the dispatcher's registry.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .codec import encode_component, escape_markup
from .identity import format_node_label
from .liveness import Liveness, classify, partition
from .models import FileEntry, NodeInfo

NODE_ACTIONS = ("ota", "configure", "edit", "logs", "delete-node")
FILE_ACTIONS = ("copy-link", "rename-file", "delete-file")

_ACTION_TITLES = {
    "ota": "OTA",
    "configure": "Set Threshold",
    "edit": "Edit",
    "logs": "Logs",
    "delete-node": "Delete",
    "copy-link": "Copy",
    "rename-file": "Rename",
    "delete-file": "Delete",
}


@dataclass(frozen=True)
class ActionDescriptor:
    action: str
    target: str

    @property
    def title(self) -> str:
        return _ACTION_TITLES.get(self.action, self.action)


@dataclass(frozen=True)
class NodeCard:
    node_id: str
    label: str
    status: str
    liveness: Liveness
    ram: str
    sd: str
    updated: str
    actions: Tuple[ActionDescriptor, ...]


@dataclass(frozen=True)
class NodesView:
    online: Tuple[NodeCard, ...]
    offline: Tuple[NodeCard, ...]

    @property
    def online_count(self) -> int:
        return len(self.online)

    @property
    def offline_count(self) -> int:
        return len(self.offline)

    @property
    def total(self) -> int:
        return self.online_count + self.offline_count

    def to_json(self) -> Dict[str, Any]:
        def card(c: NodeCard) -> Dict[str, Any]:
            d = asdict(c)
            d["liveness"] = c.liveness.value
            d["actions"] = [asdict(a) for a in c.actions]
            return d

        return {
            "online": [card(c) for c in self.online],
            "offline": [card(c) for c in self.offline],
            "online_count": self.online_count,
            "offline_count": self.offline_count,
        }


@dataclass(frozen=True)
class FileRow:
    name: str          # escaped for display
    encoded: str       # for request paths
    url: str           # download path as given by the backend
    link: str          # origin + url, what copy-link puts on the clipboard
    uploaded: str
    raw_name: str
    actions: Tuple[ActionDescriptor, ...]


# ----------------------------- formatting -----------------------------

def format_bytes(num: Optional[int]) -> str:
    if not num:
        return "0 B"
    kb = 1024
    if num < kb:
        return f"{num} B"
    if num < kb * kb:
        return f"{round(num / kb)} KB"
    return f"{round(num / (kb * kb))} MB"


def format_sd(sd_ok: Optional[bool]) -> str:
    if sd_ok is None:
        return "-"
    return "OK" if sd_ok else "FAIL"


# ----------------------------- projections -----------------------------

def render_node(node_id: str, info: NodeInfo) -> NodeCard:
    status = "" if info.status is None else info.status
    return NodeCard(
        node_id=node_id,
        label=format_node_label(node_id),
        status=escape_markup(status),
        liveness=classify(info.status),
        ram=format_bytes(info.ram_free_bytes) if info.ram_free_bytes is not None else "-",
        sd=format_sd(info.sd_ok),
        updated=escape_markup(info.updated),
        actions=tuple(ActionDescriptor(a, node_id) for a in NODE_ACTIONS),
    )


def render_nodes(view: Mapping[str, NodeInfo]) -> NodesView:
    online_ids, offline_ids = partition(view)
    return NodesView(
        online=tuple(render_node(n, view[n]) for n in online_ids),
        offline=tuple(render_node(n, view[n]) for n in offline_ids),
    )


def render_files(entries: Iterable[FileEntry], origin: str = "") -> Tuple[FileRow, ...]:
    origin = origin.rstrip("/")
    rows = []
    for e in sorted(entries, key=lambda x: x.name):
        uploaded = e.upload_time.strftime("%Y-%m-%d %H:%M:%S") if e.upload_time else ""
        rows.append(FileRow(
            name=escape_markup(e.name),
            encoded=encode_component(e.name),
            url=e.url,
            link=origin + e.url,
            uploaded=uploaded,
            raw_name=e.name,
            actions=tuple(ActionDescriptor(a, e.name) for a in FILE_ACTIONS),
        ))
    return tuple(rows)


def render_logs(lines: Iterable[str]) -> Tuple[str, ...]:
    return tuple(escape_markup(l) for l in lines)


# ----------------------------- HTML fragments -----------------------------

def _buttons(actions: Iterable[ActionDescriptor]) -> str:
    return "".join(
        f'<button class="btn act-{a.action}" data-action="{escape_markup(a.action)}" '
        f'data-target="{encode_component(a.target)}">{escape_markup(a.title)}</button>'
        for a in actions
    )


def node_card_html(card: NodeCard) -> str:
    dot = "good" if card.liveness is Liveness.ONLINE else "bad"
    return (
        f'<div class="card node {card.liveness.value}">'
        f'<div class="row"><div class="label mono">{card.label}</div>'
        f'<span class="dot {dot}"></span><span class="small">{card.status}</span></div>'
        f'<div class="small">RAM Free: <b>{card.ram}</b> · SD: <b>{card.sd}</b></div>'
        f'<div class="small">Last: {card.updated}</div>'
        f'<div class="row">{_buttons(card.actions)}</div>'
        f"</div>"
    )


def nodes_html(view: NodesView) -> str:
    if not view.total:
        return '<div class="small">No nodes yet (waiting for MQTT messages)</div>'
    parts = [f'<h2>Online <span class="count" id="k_online">{view.online_count}</span></h2>']
    parts += [node_card_html(c) for c in view.online]
    parts.append(f'<h2>Offline <span class="count" id="k_offline">{view.offline_count}</span></h2>')
    parts += [node_card_html(c) for c in view.offline]
    return "\n".join(parts)


def files_html(rows: Iterable[FileRow]) -> str:
    rows = list(rows)
    if not rows:
        return '<div class="small">No files</div>'
    out = []
    for r in rows:
        out.append(
            f'<div class="row file"><div class="mono">{r.name}</div>'
            f'<div class="small">{escape_markup(r.uploaded)}</div>'
            f'<a href="{escape_markup(r.url)}" target="_blank">Download</a>'
            f'{_buttons(r.actions)}</div>'
        )
    return "\n".join(out)


def logs_html(lines: Tuple[str, ...]) -> str:
    if not lines:
        return '<div class="small">No logs</div>'
    return "".join(f'<div class="log mono">▶ {l}</div>' for l in lines)
