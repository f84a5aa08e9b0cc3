#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/models.py — records exchanged with the backend.

Parsing is total: malformed fields degrade to "not reported" instead of
raising, because one bad node must not hide the rest of the fleet.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


# ----------------------------- helpers -----------------------------

def safe_float(x: Any, default: Optional[float] = 0.0) -> Optional[float]:
    try:
        return float(x)
    except Exception:
        return default


def safe_int(x: Any, default: Optional[int] = 0) -> Optional[int]:
    try:
        if isinstance(x, bool):
            return default
        return int(x)
    except Exception:
        return default


def parse_number(text: Any) -> Optional[float]:
    """Finite float from user text, or None."""
    if text is None:
        return None
    val = safe_float(str(text).strip(), None)
    if val is None or not math.isfinite(val):
        return None
    return val


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Go emits nanoseconds; fromisoformat only takes up to microseconds.
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        tail = ""
        for i, ch in enumerate(rest):
            if not ch.isdigit():
                tail = rest[i:]
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{tail}" if digits else head + tail
    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        return None
    if ts.year <= 1:
        return None
    return ts


# ----------------------------- records -----------------------------

@dataclass(frozen=True)
class NodeInfo:
    status: Optional[str] = None
    ram_free_bytes: Optional[int] = None
    sd_ok: Optional[bool] = None
    updated: str = ""
    ck: str = ""
    area: str = ""
    no: str = ""
    logs: Tuple[str, ...] = ()

    @classmethod
    def from_json(cls, raw: Any) -> "NodeInfo":
        if not isinstance(raw, dict):
            return cls()
        status = raw.get("status")
        ram = safe_int(raw.get("ram_free_bytes"), None)
        if ram is not None and ram < 0:
            ram = None
        sd = raw.get("sd_ok")
        logs = raw.get("logs") or []
        return cls(
            status=None if status is None else str(status),
            ram_free_bytes=ram,
            sd_ok=sd if isinstance(sd, bool) else None,
            updated=str(raw.get("updated") or ""),
            ck=str(raw.get("ck") or ""),
            area=str(raw.get("area") or ""),
            no=str(raw.get("no") or ""),
            logs=tuple(str(l) for l in logs) if isinstance(logs, list) else (),
        )


@dataclass(frozen=True)
class FileEntry:
    name: str
    url: str
    upload_time: Optional[datetime] = None

    @classmethod
    def from_json(cls, raw: Any) -> Optional["FileEntry"]:
        if not isinstance(raw, dict) or not raw.get("name"):
            return None
        name = str(raw["name"])
        return cls(
            name=name,
            url=str(raw.get("url") or f"/files/{name}"),
            upload_time=parse_timestamp(raw.get("upload_time")),
        )


@dataclass(frozen=True)
class ConfigPayload:
    node: str
    min: float
    max: float
    ck: str = ""
    area: str = ""
    no: str = ""

    def to_json(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OtaPayload:
    node: str
    url: str

    def to_json(self) -> Dict[str, Any]:
        return asdict(self)


def parse_nodes(raw: Any) -> Dict[str, NodeInfo]:
    if not isinstance(raw, dict):
        raise ValueError("node snapshot must be a JSON object")
    return {str(k): NodeInfo.from_json(v) for k, v in raw.items()}


def parse_files(raw: Any) -> List[FileEntry]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("file listing must be a JSON array")
    entries = [FileEntry.from_json(r) for r in raw]
    return [e for e in entries if e is not None]
