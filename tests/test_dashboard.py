import io
import json

import pytest

from conftest import SIM_BASE
from fleet.config import PanelConfig
from ui.dashboard import create_app

NODE = "site-A1-AABBCCDDEEFF"


@pytest.fixture()
def app(backend, sim_state):
    sim_state.ingest(f"nodes/{NODE}/status", json.dumps({"state": "running"}))
    sim_state.ingest(f"nodes/{NODE}/log", "<b>boot</b>")
    cfg = PanelConfig(backend_url=SIM_BASE, public_origin="http://panel.lan:9999")
    app = create_app(cfg, client=backend, auto_start=False)
    app.config["PANEL"].refresh()
    yield app
    app.config["PANEL"].stop()


@pytest.fixture()
def http(app):
    return app.test_client()


def test_health(http):
    r = http.get("/api/health")
    assert r.status_code == 200
    body = r.get_json()
    assert body["ok"] is True
    assert body["data"]["backend"] == SIM_BASE
    assert body["data"]["polling"] is False


def test_index_renders_labels_and_counts(http):
    r = http.get("/")
    assert r.status_code == 200
    html = r.get_data(as_text=True)
    assert "site/A1 - AA:BB:CC:DD:EE:FF" in html
    assert 'id="k_on">1<' in html
    assert "__NODES__" not in html


def test_view_lists_nodes(http):
    data = http.get("/api/view").get_json()["data"]
    assert data["nodes"]["online_count"] == 1
    assert data["nodes"]["online"][0]["node_id"] == NODE
    assert data["files"] == []


def test_form_describes_prefilled_steps(http):
    r = http.get("/api/form/configure", query_string={"target": NODE})
    steps = r.get_json()["data"]["steps"]
    assert [s["name"] for s in steps] == ["min", "max", "ck", "area", "no"]
    assert steps[0]["default"] == "16"
    assert http.get("/api/form/configure", query_string={"target": "ghost"}).status_code == 404
    assert http.get("/api/form/reboot", query_string={"target": NODE}).status_code == 404


def test_dispatch_configure_reaches_backend(http, sim_state):
    r = http.post("/api/dispatch/configure", json={
        "target": NODE,
        "answers": {"min": "17", "max": "22", "ck": "c", "area": "a", "no": "3"},
    })
    assert r.status_code == 200
    assert r.get_json()["data"]["outcome"] == "succeeded"
    topic, payload = sim_state.published[-1]
    assert topic == f"nodes/{NODE}/command"
    assert (payload["min"], payload["max"]) == (17.0, 22.0)


def test_dispatch_cancelled_sends_nothing(http, sim_state):
    r = http.post("/api/dispatch/configure", json={"target": NODE, "answers": {"min": "17"}})
    assert r.get_json()["data"] == {"outcome": "cancelled", "step": "max"}
    assert sim_state.published == []


def test_dispatch_rejected_and_failed(http):
    r = http.post("/api/dispatch/configure", json={
        "target": NODE, "answers": {"min": "30", "max": "20", "ck": "", "area": "", "no": ""},
    })
    assert r.status_code == 400
    assert r.get_json()["error"] == "min must not exceed max"

    r = http.post("/api/dispatch/delete-file", json={"target": "missing.bin", "confirm": True})
    assert r.status_code == 502
    assert r.get_json()["backend_status"] == 404


def test_dispatch_validates_body(http):
    assert http.post("/api/dispatch/configure", data="x").status_code == 400
    assert http.post("/api/dispatch/configure", json={"answers": {}}).status_code == 400
    assert http.post("/api/dispatch/logs", json={"target": NODE}).status_code == 400
    assert http.post("/api/dispatch/reboot", json={"target": NODE}).status_code == 404


def test_logs_are_escaped(http):
    data = http.get(f"/api/logs/{NODE}").get_json()["data"]
    assert data["lines"] == ["&lt;b&gt;boot&lt;/b&gt;"]
    assert "<b>" not in data["html"]
    assert http.get("/api/logs/ghost").get_json()["data"]["lines"] == []


def test_upload_then_refresh_lists_file(http, app, sim_state):
    r = http.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"\x00\x01"), "firmware.bin")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 200
    assert r.get_json()["data"]["message"] == "Upload OK"
    assert "firmware.bin" in sim_state.files

    http.post("/api/refresh")
    files = http.get("/api/view").get_json()["data"]["files"]
    assert files[0]["link"] == "http://panel.lan:9999/files/firmware.bin"

    events = http.get("/api/events").get_json()["data"]
    assert events[0]["message"] == "Upload OK"


def test_upload_with_directory_like_name_is_rejected(http, sim_state):
    r = http.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"\x00"), "firmware/")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 400
    assert r.get_json()["error"] == "file required"
    assert sim_state.files == {}
