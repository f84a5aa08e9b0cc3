import io
import pathlib
import sys
import threading
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fleet.backend import BackendClient
from fleet.models import FileEntry, NodeInfo
from fleet.store import FileSnapshotStore, NodeSnapshotStore
from sim.backend import create_backend

SIM_BASE = "http://sim.test"


class FlaskAdapter(BaseAdapter):
    """Routes requests.Session traffic into a Flask app's test client."""

    def __init__(self, app):
        super().__init__()
        self.client = app.test_client()
        self.calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        parts = urlsplit(request.url)
        self.calls.append((request.method, parts.path))
        body = request.body or b""
        if isinstance(body, str):
            body = body.encode("utf-8")
        headers = {
            k: v for k, v in request.headers.items()
            if k.lower() not in ("content-length", "content-type", "host")
        }
        with self._lock:
            resp = self.client.open(
                parts.path,
                method=request.method,
                query_string=parts.query,
                data=body,
                content_type=request.headers.get("Content-Type"),
                headers=headers,
            )
        out = requests.Response()
        out.status_code = resp.status_code
        out.reason = resp.status.split(" ", 1)[-1]
        out.headers = CaseInsensitiveDict(dict(resp.headers))
        out._content = resp.get_data()
        out._content_consumed = True
        out.raw = io.BytesIO(out._content)
        out.encoding = "utf-8"
        out.url = request.url
        out.request = request
        return out

    def close(self):
        pass


class DownAdapter(BaseAdapter):
    """Every request fails before reaching a server."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def send(self, request, **kwargs):
        self.calls += 1
        raise requests.ConnectionError("connection refused")

    def close(self):
        pass


class Clock:
    def __init__(self, t: float = 1_700_000_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


class ScriptedPrompter:
    """Answers steps by name; a missing name backs out of the wizard."""

    def __init__(self, answers: Optional[Dict[str, Optional[str]]] = None, confirm: bool = True):
        self.answers = dict(answers or {})
        self.confirm_answer = confirm
        self.asked: List[Tuple[str, Optional[str]]] = []
        self.confirmations: List[str] = []

    def ask(self, step):
        self.asked.append((step.name, step.default))
        return self.answers.get(step.name)

    def confirm(self, message):
        self.confirmations.append(message)
        return self.confirm_answer


class RecordingNotifier:
    def __init__(self):
        self.messages: List[Tuple[str, bool]] = []

    def notify(self, message, ok=True):
        self.messages.append((message, ok))


class RecordingPoller:
    def __init__(self):
        self.refreshes: List[str] = []

    def refresh_now(self, kind, delay=None):
        self.refreshes.append(kind)


class FakeClient:
    """BackendClient stand-in that records calls and replays canned results."""

    def __init__(self, **results: Any):
        self.results = results
        self.calls: List[Tuple[str, tuple]] = []

    def _call(self, name, *args):
        self.calls.append((name, args))
        res = self.results.get(name)
        if isinstance(res, Exception):
            raise res
        return res

    def list_nodes(self):
        return self._call("list_nodes")

    def list_files(self):
        return self._call("list_files")

    def fetch_logs(self, node_id):
        return self._call("fetch_logs", node_id)

    def delete_node(self, node_id):
        return self._call("delete_node", node_id)

    def delete_file(self, name):
        return self._call("delete_file", name)

    def rename_file(self, name, new_name):
        return self._call("rename_file", name, new_name)

    def push_config(self, payload):
        return self._call("push_config", payload)

    def trigger_ota(self, payload):
        return self._call("trigger_ota", payload)

    def upload(self, path):
        return self._call("upload", path)


# ----------------------------- fixtures -----------------------------

@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def uploads(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    return d


@pytest.fixture()
def sim_app(uploads, clock):
    return create_backend(str(uploads), clock=clock)


@pytest.fixture()
def sim_state(sim_app):
    return sim_app.config["SIM_STATE"]


@pytest.fixture()
def adapter(sim_app):
    return FlaskAdapter(sim_app)


@pytest.fixture()
def backend(adapter):
    session = requests.Session()
    session.mount(SIM_BASE, adapter)
    return BackendClient(SIM_BASE, timeout=2.0, session=session)


@pytest.fixture()
def node_store():
    return NodeSnapshotStore({
        "site-A1-AABBCCDDEEFF": NodeInfo(status="running", ck="x", area="y", no="1"),
        "lab-B1-DEADBEEF0001": NodeInfo(status="offline"),
    })


@pytest.fixture()
def file_store():
    return FileSnapshotStore([FileEntry(name="fw v2.bin", url="/files/fw v2.bin")])
