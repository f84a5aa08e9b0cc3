#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/config.py — panel configuration.

Precedence (lowest → highest)
-----------------------------
1. built-in defaults
2. YAML file (--config PATH or $FLEET_CONFIG)
3. environment: FLEET_BACKEND, FLEET_PUBLIC_ORIGIN, FLEET_TIMEOUT,
   FLEET_NODE_INTERVAL, FLEET_FILE_INTERVAL, FLEET_REFRESH_DELAY, FLEET_LOG_LEVEL
4. command-line flags (with_overrides)

Example YAML
------------
backend_url: http://172.20.100.11:9999
public_origin: http://panel.example.lan:9999
node_interval: 5
file_interval: 5
refresh_delay: 0.8
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

DEFAULT_BACKEND = "http://127.0.0.1:9999"

_ENV_KEYS = {
    "FLEET_BACKEND": "backend_url",
    "FLEET_PUBLIC_ORIGIN": "public_origin",
    "FLEET_TIMEOUT": "request_timeout",
    "FLEET_NODE_INTERVAL": "node_interval",
    "FLEET_FILE_INTERVAL": "file_interval",
    "FLEET_REFRESH_DELAY": "refresh_delay",
    "FLEET_LOG_LEVEL": "log_level",
}

_FLOAT_KEYS = {"request_timeout", "node_interval", "file_interval", "refresh_delay"}


@dataclass(frozen=True)
class PanelConfig:
    backend_url: str = DEFAULT_BACKEND
    public_origin: Optional[str] = None
    request_timeout: float = 10.0
    node_interval: float = 5.0
    file_interval: float = 5.0
    refresh_delay: float = 0.8
    log_level: str = "INFO"

    @property
    def origin(self) -> str:
        """Origin used to build shareable file links."""
        return (self.public_origin or self.backend_url).rstrip("/")

    def with_overrides(self, **kw: Any) -> "PanelConfig":
        known = {f.name for f in fields(self)}
        clean = {k: v for k, v in kw.items() if k in known and v is not None}
        return replace(self, **_coerce(clean))

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, val in values.items():
        if key in _FLOAT_KEYS:
            try:
                num = float(val)
            except (TypeError, ValueError):
                raise ConfigError(f"{key} must be a number, got {val!r}")
            if num < 0:
                raise ConfigError(f"{key} must be >= 0, got {num}")
            out[key] = num
        elif key == "backend_url":
            url = str(val).strip()
            if not url.startswith(("http://", "https://")):
                raise ConfigError(f"backend_url must be an http(s) URL, got {url!r}")
            out[key] = url.rstrip("/")
        else:
            out[key] = None if val is None else str(val)
    return out


def load_config(
    path: Optional[str] = None, env: Optional[Mapping[str, str]] = None
) -> PanelConfig:
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}

    path = path or env.get("FLEET_CONFIG")
    if path:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"config file not found: {p}")
        try:
            data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse {p}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"{p} must contain a mapping")
        known = {f.name for f in fields(PanelConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys in {p}: {', '.join(unknown)}")
        values.update(data)

    for env_key, field_name in _ENV_KEYS.items():
        if env.get(env_key):
            values[field_name] = env[env_key]

    return PanelConfig(**_coerce(values))


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
