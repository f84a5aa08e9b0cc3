#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/dispatcher.py — operator workflows.

Each workflow runs Collect → Validate → Encode → Send → Interpret:

  collect    Wizard steps through the caller's Prompter (Cancelled on abort)
  validate   reject bad input before anything leaves the process
  encode     payload dataclasses; path segments are encoded by BackendClient
  send       exactly one backend request
  interpret  one notification; on success only, a delayed snapshot refresh

Actions
-------
configure / edit     min → max → ck → area → no, prefilled from the node store
ota                  firmware URL
logs                 last log lines ("No logs" for empty *and* unknown nodes)
delete-node          confirm, DELETE /api/nodes/{id}
delete-file          confirm, DELETE /api/files/{name}
rename-file          new name (empty/unchanged → nothing sent)
copy-link            full download URL to the clipboard, no backend call
upload               local file → POST /upload

Front ends call dispatch(action, target, prompter); the registry is the only
place an action name is resolved.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from .backend import BackendClient, UploadResult
from .clipboard import Clipboard, ClipboardUnavailable
from .errors import BackendError, TransportError, UnknownAction
from .models import ConfigPayload, OtaPayload, parse_number
from .poller import FILES, NODES
from .store import FileSnapshotStore, NodeSnapshotStore
from .workflows import (
    Cancelled,
    Failed,
    Notifier,
    Outcome,
    Prompter,
    Rejected,
    Step,
    Succeeded,
    Wizard,
)

log = logging.getLogger("fleet.dispatcher")

GENERIC_ERROR = "unknown"
NO_LOGS = "No logs"
DEFAULT_MIN = "16"
DEFAULT_MAX = "20"


class _NullNotifier:
    def notify(self, message: str, ok: bool = True) -> None:
        log.info("[dispatch] %s%s", "" if ok else "FAILED: ", message)


# ----------------------------- registry -----------------------------

Handler = Callable[[str, Prompter], Outcome]
FormBuilder = Callable[[str], Union[Wizard, Rejected]]


@dataclass(frozen=True)
class Command:
    name: str
    handler: Handler
    form: Optional[FormBuilder] = None
    confirm: Optional[Callable[[str], str]] = None


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: Dict[str, Command] = {}

    def register(self, command: Command) -> None:
        self._commands[command.name] = command

    def get(self, action: str) -> Command:
        try:
            return self._commands[action]
        except KeyError:
            raise UnknownAction(f"unknown action: {action!r}") from None

    def actions(self) -> List[str]:
        return sorted(self._commands)

    def __contains__(self, action: object) -> bool:
        return action in self._commands


# ----------------------------- dispatcher -----------------------------

class Dispatcher:
    def __init__(
        self,
        client: BackendClient,
        nodes: NodeSnapshotStore,
        files: FileSnapshotStore,
        poller: Any = None,
        notifier: Optional[Notifier] = None,
        clipboard: Optional[Clipboard] = None,
        fallback_clipboard: Optional[Clipboard] = None,
        public_origin: str = "",
    ):
        self.client = client
        self.nodes = nodes
        self.files = files
        self.poller = poller
        self.notifier = notifier or _NullNotifier()
        self.clipboard = clipboard
        self.fallback_clipboard = fallback_clipboard
        self.public_origin = public_origin.rstrip("/")

        self._inflight: Set[Tuple[str, str]] = set()
        self._inflight_lock = threading.Lock()

        self.registry = CommandRegistry()
        for cmd in (
            Command("configure", self.configure, form=self.configure_form),
            Command("edit", self.edit, form=self.configure_form),
            Command("ota", self.ota, form=self.ota_form),
            Command("logs", self.logs),
            Command("delete-node", self.delete_node, confirm=lambda t: f"Delete node {t}?"),
            Command("delete-file", self.delete_file, confirm=lambda t: f"Delete file {t}?"),
            Command("rename-file", self.rename_file, form=self.rename_form),
            Command("copy-link", self.copy_link),
            Command("upload", self.upload, form=self.upload_form),
        ):
            self.registry.register(cmd)

    # -------- entry points --------

    def dispatch(self, action: str, target: str, prompter: Prompter) -> Outcome:
        command = self.registry.get(action)
        key = (action, target)
        with self._inflight_lock:
            if key in self._inflight:
                self.notifier.notify(f"{action} for {target} is already in progress", ok=False)
                return Rejected("already in progress")
            self._inflight.add(key)
        try:
            return command.handler(target, prompter)
        finally:
            with self._inflight_lock:
                self._inflight.discard(key)

    def describe(self, action: str, target: str) -> Dict[str, Any]:
        """Questions (with prefilled defaults) an action will ask for a target."""
        command = self.registry.get(action)
        out: Dict[str, Any] = {"action": action, "target": target, "steps": [], "confirm": None}
        if command.form is not None:
            form = command.form(target)
            if isinstance(form, Rejected):
                out["error"] = form.reason
            else:
                out["steps"] = form.describe()
        if command.confirm is not None:
            out["confirm"] = command.confirm(target)
        return out

    # -------- forms --------

    def configure_form(self, node_id: str) -> Union[Wizard, Rejected]:
        info = self.nodes.get(node_id)
        if info is None:
            return Rejected("node not found")
        return Wizard([
            Step("min", "Set min temperature (°C):", DEFAULT_MIN, required=True),
            Step("max", "Set max temperature (°C):", DEFAULT_MAX, required=True),
            Step("ck", "Set ck (string):", info.ck),
            Step("area", "Set area (string):", info.area),
            Step("no", "Set no (string):", info.no),
        ])

    def ota_form(self, node_id: str) -> Wizard:
        hint = f"{self.public_origin}/files/firmware.bin"
        return Wizard([Step("url", f"Enter OTA URL (full URL, e.g. {hint}):", required=True)])

    def rename_form(self, name: str) -> Wizard:
        return Wizard([Step("new_name", f"Enter new name for {name}:", name)])

    def upload_form(self, path: str) -> Wizard:
        return Wizard([Step("path", "File to upload:", path or None, required=True)])

    # -------- workflows --------

    def configure(self, node_id: str, prompter: Prompter) -> Outcome:
        return self._configure(node_id, prompter, ok_verb="Threshold sent", fail_verb="Failed")

    def edit(self, node_id: str, prompter: Prompter) -> Outcome:
        return self._configure(node_id, prompter, ok_verb="Edit sent", fail_verb="Failed edit")

    def _configure(self, node_id: str, prompter: Prompter, ok_verb: str, fail_verb: str) -> Outcome:
        form = self.configure_form(node_id)
        if isinstance(form, Rejected):
            self.notifier.notify(f"Node not found: {node_id}", ok=False)
            return form
        collected = form.run(prompter)
        if isinstance(collected, Cancelled):
            return collected

        lo = parse_number(collected["min"])
        hi = parse_number(collected["max"])
        if lo is None:
            return self._reject("min must be a number")
        if hi is None:
            return self._reject("max must be a number")
        if lo > hi:
            return self._reject("min must not exceed max")

        payload = ConfigPayload(
            node=node_id,
            min=lo,
            max=hi,
            ck=collected["ck"],
            area=collected["area"],
            no=collected["no"],
        )
        return self._send(
            lambda: self.client.push_config(payload),
            ok_verb=ok_verb,
            fail_verb=fail_verb,
            refresh=NODES,
        )

    def ota(self, node_id: str, prompter: Prompter) -> Outcome:
        collected = self.ota_form(node_id).run(prompter)
        if isinstance(collected, Cancelled):
            return collected
        payload = OtaPayload(node=node_id, url=collected["url"].strip())
        return self._send(
            lambda: self.client.trigger_ota(payload), ok_verb="OTA sent", fail_verb="OTA failed"
        )

    def logs(self, node_id: str, prompter: Prompter) -> Outcome:
        try:
            lines = self.client.fetch_logs(node_id)
        except (BackendError, TransportError) as e:
            log.debug("[dispatch] logs for %s unavailable: %s", node_id, e)
            lines = []
        if not lines:
            return Succeeded(NO_LOGS, data=())
        return Succeeded(f"{len(lines)} log line(s)", data=tuple(lines))

    def delete_node(self, node_id: str, prompter: Prompter) -> Outcome:
        if not prompter.confirm(f"Delete node {node_id}?"):
            return Cancelled(step="confirm")
        return self._send(
            lambda: self.client.delete_node(node_id),
            ok_verb=f"Deleted: {node_id}",
            fail_verb="Delete failed",
            refresh=NODES,
        )

    def delete_file(self, name: str, prompter: Prompter) -> Outcome:
        if not prompter.confirm(f"Delete file {name}?"):
            return Cancelled(step="confirm")
        return self._send(
            lambda: self.client.delete_file(name),
            ok_verb=f"Deleted: {name}",
            fail_verb="Delete failed",
            refresh=FILES,
        )

    def rename_file(self, name: str, prompter: Prompter) -> Outcome:
        collected = self.rename_form(name).run(prompter)
        if isinstance(collected, Cancelled):
            return collected
        new_name = collected["new_name"].strip()
        if not new_name or new_name == name:
            return Cancelled(step="new_name")
        return self._send(
            lambda: self.client.rename_file(name, new_name),
            ok_verb=f"Renamed to: {new_name}",
            fail_verb="Rename failed",
            refresh=FILES,
        )

    def copy_link(self, name: str, prompter: Prompter) -> Outcome:
        entry = self.files.get(name)
        if entry is None:
            return self._reject(f"file not found: {name}")
        url = self.public_origin + entry.url
        for clip in (self.clipboard, self.fallback_clipboard):
            if clip is None:
                continue
            try:
                clip.copy(url)
            except ClipboardUnavailable as e:
                log.debug("[dispatch] clipboard %s unavailable: %s", type(clip).__name__, e)
                continue
            message = f"Link copied: {url}"
            self.notifier.notify(message, ok=True)
            return Succeeded(message, data=url)
        self.notifier.notify("Failed to copy link.", ok=False)
        return Failed("Failed to copy link.")

    def upload(self, path: str, prompter: Prompter) -> Outcome:
        collected = self.upload_form(path).run(prompter)
        if isinstance(collected, Cancelled):
            return collected
        local = os.path.expanduser(collected["path"].strip())
        if not os.path.isfile(local):
            return self._reject(f"file not found: {local}")

        def _message(result: UploadResult) -> str:
            return "Upload OK" if result.redirected else "Upload finished"

        return self._send(
            lambda: self.client.upload(local),
            ok_verb=_message,
            fail_verb="Upload error",
            refresh=FILES,
        )

    # -------- interpret --------

    def _reject(self, reason: str) -> Rejected:
        self.notifier.notify(reason, ok=False)
        return Rejected(reason)

    def _send(
        self,
        call: Callable[[], Any],
        ok_verb: Union[str, Callable[[Any], str]],
        fail_verb: str,
        refresh: Optional[str] = None,
    ) -> Outcome:
        try:
            data = call()
        except BackendError as e:
            message = e.message or GENERIC_ERROR
            self.notifier.notify(f"{fail_verb}: {message}", ok=False)
            return Failed(message, status=e.status)
        except TransportError as e:
            message = f"Network error: {e}"
            self.notifier.notify(message, ok=False)
            return Failed(message)
        except OSError as e:
            message = f"{fail_verb}: {e}"
            self.notifier.notify(message, ok=False)
            return Failed(message)

        message = ok_verb(data) if callable(ok_verb) else ok_verb
        if refresh and self.poller is not None:
            self.poller.refresh_now(refresh)
        self.notifier.notify(message, ok=True)
        return Succeeded(message, data=data, refresh=refresh)
