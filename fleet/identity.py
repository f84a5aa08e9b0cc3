#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/identity.py — human labels for raw node ids.

Node ids look like "<site>-<area>-<12 hex MAC>", e.g. "site-A1-AABBCCDDEEFF",
which is shown as "site/A1 - AA:BB:CC:DD:EE:FF".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .codec import escape_markup

MAC_LEN = 12

_MAC_RE = re.compile(r"[0-9a-fA-F]{12}")


@dataclass(frozen=True)
class NodeLabel:
    prefix: str
    mac: Optional[str]   # None when the id is too short to carry one
    raw: str

    def text(self) -> str:
        if self.mac is None:
            return self.raw
        if not self.prefix:
            return self.mac
        return f"{self.prefix} - {self.mac}"


def group_mac(suffix: str) -> str:
    return ":".join(suffix[i:i + 2] for i in range(0, len(suffix), 2))


def split_node_id(raw: str) -> NodeLabel:
    raw = "" if raw is None else str(raw)
    if len(raw) < MAC_LEN:
        return NodeLabel(prefix="", mac=None, raw=raw)
    head, suffix = raw[:-MAC_LEN], raw[-MAC_LEN:]
    prefix = head.replace("-", "/").rstrip("/")
    return NodeLabel(prefix=prefix, mac=group_mac(suffix), raw=raw)


def format_node_label(raw: str) -> str:
    """Escaped, display-ready label. Never raises."""
    return escape_markup(split_node_id(raw).text())


def mac_of(node_id: str) -> Optional[str]:
    """Last run of 12 hex digits in the id (the device MAC), if any."""
    matches = _MAC_RE.findall(node_id or "")
    return matches[-1] if matches else None
