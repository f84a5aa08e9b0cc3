#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/clipboard.py — putting a link where the operator can paste it.

SystemClipboard shells out to whatever clipboard tool the platform has.
Osc52Clipboard is the fallback: it writes an OSC 52 escape sequence to the
terminal, which most terminal emulators (and tmux/ssh sessions) turn into a
clipboard write.
"""

from __future__ import annotations

import base64
import os
import platform
import shutil
import subprocess
import sys
from typing import List, Optional, Protocol, Sequence, TextIO

from .errors import FleetError


class ClipboardUnavailable(FleetError):
    pass


class Clipboard(Protocol):
    def copy(self, text: str) -> None:
        ...


def _candidate_commands() -> List[Sequence[str]]:
    system = platform.system()
    if system == "Darwin":
        return [["pbcopy"]]
    if system == "Windows":
        return [["clip"]]
    cmds: List[Sequence[str]] = []
    if os.environ.get("WAYLAND_DISPLAY"):
        cmds.append(["wl-copy"])
    cmds += [["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]]
    return cmds


class SystemClipboard:
    def __init__(self, commands: Optional[List[Sequence[str]]] = None, timeout: float = 3.0):
        self.commands = commands if commands is not None else _candidate_commands()
        self.timeout = timeout

    def copy(self, text: str) -> None:
        errors = []
        for cmd in self.commands:
            if not shutil.which(cmd[0]):
                continue
            try:
                subprocess.run(list(cmd), input=text.encode("utf-8"), check=True,
                               timeout=self.timeout, capture_output=True)
                return
            except (OSError, subprocess.SubprocessError) as e:
                errors.append(f"{cmd[0]}: {e}")
        raise ClipboardUnavailable("; ".join(errors) or "no clipboard tool found")


class Osc52Clipboard:
    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def copy(self, text: str) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        if not stream.isatty():
            raise ClipboardUnavailable("output is not a terminal")
        payload = base64.b64encode(text.encode("utf-8")).decode("ascii")
        stream.write(f"\x1b]52;c;{payload}\x07")
        stream.flush()
