#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/panel.py — wires config, backend client, stores, poller and dispatcher.

Both front ends (ui/dashboard.py and cli/fleetctl.py) build one Panel and
talk to it; nothing else holds global state.
"""

from __future__ import annotations

from typing import Optional, Tuple

from .backend import BackendClient
from .clipboard import Clipboard, Osc52Clipboard, SystemClipboard
from .config import PanelConfig
from .dispatcher import Dispatcher
from .poller import Poller
from .render import FileRow, NodesView, render_files, render_nodes
from .store import FileSnapshotStore, NodeSnapshotStore
from .workflows import Notifier, Outcome, Prompter


class Panel:
    def __init__(
        self,
        config: PanelConfig,
        client: Optional[BackendClient] = None,
        notifier: Optional[Notifier] = None,
        clipboard: Optional[Clipboard] = None,
        fallback_clipboard: Optional[Clipboard] = None,
    ):
        self.config = config
        self.client = client or BackendClient(config.backend_url, timeout=config.request_timeout)
        self.nodes = NodeSnapshotStore()
        self.files = FileSnapshotStore()
        self.poller = Poller(
            self.client,
            self.nodes,
            self.files,
            node_interval=config.node_interval,
            file_interval=config.file_interval,
            refresh_delay=config.refresh_delay,
        )
        self.dispatcher = Dispatcher(
            self.client,
            self.nodes,
            self.files,
            poller=self.poller,
            notifier=notifier,
            clipboard=clipboard if clipboard is not None else SystemClipboard(),
            fallback_clipboard=fallback_clipboard if fallback_clipboard is not None else Osc52Clipboard(),
            public_origin=config.origin,
        )

    def start(self) -> None:
        self.poller.start()

    def stop(self) -> None:
        self.poller.stop()

    def refresh(self) -> None:
        """One synchronous poll of both snapshots."""
        self.poller.poll_nodes()
        self.poller.poll_files()

    def nodes_view(self) -> NodesView:
        return render_nodes(self.nodes.view())

    def file_rows(self) -> Tuple[FileRow, ...]:
        return render_files(self.files.view(), self.config.origin)

    def dispatch(self, action: str, target: str, prompter: Prompter) -> Outcome:
        return self.dispatcher.dispatch(action, target, prompter)
