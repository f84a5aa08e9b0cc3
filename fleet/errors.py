#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""fleet/errors.py — exception types shared by the panel layers."""

from __future__ import annotations

from typing import Optional


class FleetError(Exception):
    pass


class TransportError(FleetError):
    """The request never completed (connection refused, timeout, DNS...)."""


class BackendError(FleetError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        self.message = message
        super().__init__(message or f"backend returned HTTP {status}")


class UnknownAction(FleetError):
    pass


class ConfigError(FleetError):
    pass
