#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/codec.py — transport encoding and markup escaping.

Two unrelated jobs live here and must not be mixed up:

- encode_component / decode_component: put one string into one URL path
  segment (or one attribute value) and get it back byte-for-byte.
- escape_markup: neutralize & < > " ' before text is shown in a page.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote, unquote

_MARKUP_ENTITIES = (
    ("&", "&amp;"),   # first, so later entities are not double-escaped
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#039;"),
)


def encode_component(raw: str) -> str:
    return quote(str(raw), safe="", encoding="utf-8", errors="strict")


def decode_component(encoded: str) -> str:
    return unquote(str(encoded), encoding="utf-8", errors="strict")


def escape_markup(text: Any) -> str:
    if text is None:
        return ""
    out = str(text)
    for ch, entity in _MARKUP_ENTITIES:
        out = out.replace(ch, entity)
    return out


def join_path(*segments: str) -> str:
    """Build '/a/b/c' from raw segments, encoding each one."""
    return "/" + "/".join(encode_component(s) for s in segments)
