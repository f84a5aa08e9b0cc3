#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/liveness.py — online/offline classification.

The backend decides staleness and reports it as status "offline". Everything
else, including a missing status, counts as online so unreported nodes stay
visible.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Mapping, Tuple

OFFLINE_STATUS = "offline"


class Liveness(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


def classify(status: Any) -> Liveness:
    if status is None:
        return Liveness.ONLINE
    if str(status).lower() == OFFLINE_STATUS:
        return Liveness.OFFLINE
    return Liveness.ONLINE


def partition(nodes: Mapping[str, Any]) -> Tuple[List[str], List[str]]:
    """Split node ids into (online, offline), each sorted lexicographically."""
    online: List[str] = []
    offline: List[str] = []
    for node_id in sorted(nodes):
        info = nodes[node_id]
        status = getattr(info, "status", None)
        if classify(status) is Liveness.OFFLINE:
            offline.append(node_id)
        else:
            online.append(node_id)
    return online, offline
