#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cli/fleetctl.py — operate the fleet from a terminal.

Usage
-----
python3 -m cli.fleetctl --backend http://127.0.0.1:9999 nodes
python3 -m cli.fleetctl files
python3 -m cli.fleetctl watch --interval 5
python3 -m cli.fleetctl configure site-A1-AABBCCDDEEFF
python3 -m cli.fleetctl ota site-A1-AABBCCDDEEFF
python3 -m cli.fleetctl logs site-A1-AABBCCDDEEFF
python3 -m cli.fleetctl delete-node site-A1-AABBCCDDEEFF
python3 -m cli.fleetctl rename-file firmware.bin
python3 -m cli.fleetctl copy-link firmware.bin
python3 -m cli.fleetctl upload ./build/firmware.bin

Prompts
-------
Each question shows its default in brackets; Enter keeps it. Ctrl-D (or
Ctrl-C) at any question abandons the whole command and nothing is sent.
"""

from __future__ import annotations

import argparse
import sys
import time
from html import unescape
from typing import Callable, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fleet.config import configure_logging, load_config
from fleet.errors import ConfigError
from fleet.identity import split_node_id
from fleet.panel import Panel
from fleet.render import NodesView, render_logs
from fleet.workflows import Cancelled, Failed, Rejected, Step, Succeeded

console = Console()

ACTIONS = (
    "configure", "edit", "ota", "logs", "delete-node",
    "delete-file", "rename-file", "copy-link", "upload",
)


# ----------------------------- terminal I/O -----------------------------

class TerminalPrompter:
    def __init__(self, read: Callable[[str], str] = input):
        self.read = read

    def ask(self, step: Step) -> Optional[str]:
        suffix = f" [{step.default}]" if step.default else ""
        try:
            answer = self.read(f"{step.label}{suffix} ")
        except (EOFError, KeyboardInterrupt):
            return None
        if answer == "" and step.default is not None:
            return step.default
        return answer

    def confirm(self, message: str) -> bool:
        try:
            answer = self.read(f"{message} [y/N] ")
        except (EOFError, KeyboardInterrupt):
            return False
        return answer.strip().lower() in ("y", "yes")


class ConsoleNotifier:
    def notify(self, message: str, ok: bool = True) -> None:
        style = "green" if ok else "red"
        console.print(f"[{style}]{escape(message)}[/{style}]", highlight=False)


# ----------------------------- tables -----------------------------

def nodes_table(view: NodesView) -> Table:
    tbl = Table(
        title=f"Nodes — online {view.online_count} / offline {view.offline_count}",
        show_lines=False,
    )
    tbl.add_column("Node", style="bold")
    tbl.add_column("MAC")
    tbl.add_column("Status")
    tbl.add_column("RAM free", justify="right")
    tbl.add_column("SD", justify="center")
    tbl.add_column("Last update", style="dim")
    for card in view.online + view.offline:
        label = split_node_id(card.node_id)
        alive = card.liveness.value == "online"
        tbl.add_row(
            label.prefix or label.raw,
            label.mac or "—",
            f"[{'green' if alive else 'red'}]●[/] {_plain(card.status)}",
            card.ram,
            card.sd,
            _plain(card.updated) or "—",
        )
    return tbl


def _plain(escaped: str) -> str:
    # cards carry HTML-escaped text; the terminal wants it back, minus rich markup
    return escape(unescape(escaped))


def files_table(panel: Panel) -> Table:
    tbl = Table(title=f"Files ({len(panel.files)})")
    tbl.add_column("Name", style="bold")
    tbl.add_column("Uploaded", style="dim")
    tbl.add_column("Link")
    for row in panel.file_rows():
        tbl.add_row(_plain(row.name), row.uploaded or "—", _plain(row.link))
    return tbl


# ----------------------------- commands -----------------------------

def run_action(panel: Panel, action: str, target: str, prompter: TerminalPrompter) -> int:
    outcome = panel.dispatch(action, target, prompter)
    if isinstance(outcome, Cancelled):
        console.print("[yellow]cancelled, nothing sent[/yellow]")
        return 1
    if isinstance(outcome, (Rejected, Failed)):
        return 1
    if action == "logs" and isinstance(outcome, Succeeded):
        lines = render_logs(outcome.data or ())
        if not lines:
            console.print("[dim]No logs[/dim]")
        for line in lines:
            console.print(f"▶ {_plain(line)}", highlight=False)
    return 0


def watch(panel: Panel, interval: float, rounds: int = 0) -> None:
    n = 0
    while True:
        panel.refresh()
        console.clear()
        console.print(nodes_table(panel.nodes_view()))
        console.print(files_table(panel))
        n += 1
        if rounds and n >= rounds:
            return
        time.sleep(interval)


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Fleet panel — terminal client")
    ap.add_argument("--config", default=None, help="YAML config file")
    ap.add_argument("--backend", default=None, help="Backend base URL (e.g. http://127.0.0.1:9999)")
    ap.add_argument("--public-origin", default=None, help="Origin used in copied file links")
    ap.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    ap.add_argument("--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("nodes", help="List nodes grouped by liveness")
    sub.add_parser("files", help="List files on the backend store")
    w = sub.add_parser("watch", help="Redraw nodes and files on an interval")
    w.add_argument("--interval", type=float, default=None)

    for action in ACTIONS:
        p = sub.add_parser(action, help=f"Run the {action} workflow")
        p.add_argument("target", help="node id, file name, or (upload) local path")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)

    try:
        config = load_config(args.config).with_overrides(
            backend_url=args.backend,
            public_origin=args.public_origin,
            request_timeout=args.timeout,
        )
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    configure_logging("DEBUG" if args.verbose else "WARNING")
    panel = Panel(config, notifier=ConsoleNotifier())

    if args.command == "watch":
        try:
            watch(panel, args.interval or config.node_interval)
        except KeyboardInterrupt:
            console.print("\n[dim]stopped[/dim]")
        return 0

    panel.refresh()
    if args.command == "nodes":
        console.print(nodes_table(panel.nodes_view()))
        return 0
    if args.command == "files":
        console.print(files_table(panel))
        return 0

    try:
        return run_action(panel, args.command, args.target, TerminalPrompter())
    finally:
        panel.stop()


if __name__ == "__main__":
    sys.exit(main())
