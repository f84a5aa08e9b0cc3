#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/poller.py — background refresh of the node and file snapshots.

Two daemon threads, one per resource, each on its own interval and not
synchronized with the other. A tick either replaces its store with the full
backend snapshot or, on any failure, leaves it alone and logs a warning:
no partial updates, no retries, no backoff.

refresh_now() is what the dispatcher calls after a successful mutation; it
fires one extra tick after a short delay so the backend can settle. It is a
convenience, not a consistency guarantee.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from .backend import BackendClient
from .errors import FleetError
from .store import FileSnapshotStore, NodeSnapshotStore

log = logging.getLogger("fleet.poller")

NODES = "nodes"
FILES = "files"

Listener = Callable[[str], None]


class Poller:
    def __init__(
        self,
        client: BackendClient,
        nodes: NodeSnapshotStore,
        files: FileSnapshotStore,
        node_interval: float = 5.0,
        file_interval: float = 5.0,
        refresh_delay: float = 0.8,
    ):
        self.client = client
        self.nodes = nodes
        self.files = files
        self.intervals: Dict[str, float] = {
            NODES: max(0.1, float(node_interval)),
            FILES: max(0.1, float(file_interval)),
        }
        self.refresh_delay = max(0.0, float(refresh_delay))

        self._stop_event = threading.Event()
        self._threads: Dict[str, threading.Thread] = {}
        self._timers: List[threading.Timer] = []
        self._timers_lock = threading.Lock()
        self._listeners: List[Listener] = []

    # -------- public lifecycle --------

    def start(self) -> None:
        self._stop_event.clear()
        for kind in (NODES, FILES):
            t = self._threads.get(kind)
            if t and t.is_alive():
                continue
            t = threading.Thread(
                target=self._loop, args=(kind,), name=f"FleetPoll-{kind}", daemon=True
            )
            self._threads[kind] = t
            t.start()

    def stop(self) -> None:
        self._stop_event.set()
        with self._timers_lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        for t in self._threads.values():
            t.join(timeout=2.0)

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads.values())

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    # -------- ticks --------

    def poll_nodes(self) -> bool:
        try:
            snapshot = self.client.list_nodes()
        except FleetError as e:
            log.warning("[poller] WARN: node poll failed, keeping %d cached: %s", len(self.nodes), e)
            return False
        self.nodes.replace(snapshot)
        self._notify(NODES)
        return True

    def poll_files(self) -> bool:
        try:
            entries = self.client.list_files()
        except FleetError as e:
            log.warning("[poller] WARN: file poll failed, keeping %d cached: %s", len(self.files), e)
            return False
        self.files.replace(entries)
        self._notify(FILES)
        return True

    def poll(self, kind: str) -> bool:
        if kind == NODES:
            return self.poll_nodes()
        if kind == FILES:
            return self.poll_files()
        raise ValueError(f"unknown snapshot kind: {kind!r}")

    def refresh_now(self, kind: str, delay: Optional[float] = None) -> threading.Timer:
        if kind not in self.intervals:
            raise ValueError(f"unknown snapshot kind: {kind!r}")
        wait = self.refresh_delay if delay is None else max(0.0, delay)
        timer = threading.Timer(wait, self._fire_refresh, args=(kind,))
        timer.daemon = True
        with self._timers_lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()
        return timer

    # -------- internals --------

    def _fire_refresh(self, kind: str) -> None:
        if self._stop_event.is_set():
            return
        self.poll(kind)

    def _loop(self, kind: str) -> None:
        log.info("[poller] %s loop started (interval=%.1fs)", kind, self.intervals[kind])
        while not self._stop_event.is_set():
            try:
                self.poll(kind)
            except Exception as e:
                log.error("[poller] %s iteration failed: %s", kind, e)
            self._stop_event.wait(self.intervals[kind])

    def _notify(self, kind: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind)
            except Exception as e:
                log.warning("[poller] WARN: listener failed for %s: %s", kind, e)
