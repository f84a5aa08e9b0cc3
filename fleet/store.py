#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/store.py — snapshot stores for nodes and files.

A store only ever holds one complete snapshot. replace() builds a private
copy and swaps it in under the lock; view() hands out the current object,
which is never mutated afterwards, so readers cannot observe a mix of two
polls.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from .models import FileEntry, NodeInfo


class NodeSnapshotStore:
    def __init__(self, initial: Optional[Mapping[str, NodeInfo]] = None):
        self._lock = threading.Lock()
        self._view: Mapping[str, NodeInfo] = MappingProxyType(dict(initial or {}))
        self._generation = 0

    def replace(self, nodes: Mapping[str, NodeInfo]) -> None:
        fresh = MappingProxyType(dict(nodes))
        with self._lock:
            self._view = fresh
            self._generation += 1

    def view(self) -> Mapping[str, NodeInfo]:
        with self._lock:
            return self._view

    def get(self, node_id: str) -> Optional[NodeInfo]:
        return self.view().get(node_id)

    @property
    def generation(self) -> int:
        """Number of replaces so far."""
        with self._lock:
            return self._generation

    def __len__(self) -> int:
        return len(self.view())

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.view()


class FileSnapshotStore:
    def __init__(self, initial: Optional[Iterable[FileEntry]] = None):
        self._lock = threading.Lock()
        self._entries: Tuple[FileEntry, ...] = tuple(initial or ())
        self._generation = 0

    def replace(self, entries: Iterable[FileEntry]) -> None:
        fresh = tuple(entries)
        with self._lock:
            self._entries = fresh
            self._generation += 1

    def view(self) -> Tuple[FileEntry, ...]:
        with self._lock:
            return self._entries

    def get(self, name: str) -> Optional[FileEntry]:
        for entry in self.view():
            if entry.name == name:
                return entry
        return None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def __len__(self) -> int:
        return len(self.view())
