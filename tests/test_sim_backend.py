import json

from sim.backend import MAX_LOG_LINES, SimNode, create_backend, seed_demo

OLD = "site-A1-AABBCCDDEEFF"
NEW = "site-B2-AABBCCDDEEFF"


def test_only_latest_logs_are_kept(sim_state):
    for i in range(5):
        sim_state.ingest(f"nodes/{OLD}/log", f"line {i}")
    assert sim_state.nodes[OLD].logs == [f"line {i}" for i in range(5 - MAX_LOG_LINES, 5)]


def test_status_accepts_plain_text_and_state_objects(sim_state):
    sim_state.ingest(f"nodes/{OLD}/status", "booting")
    assert sim_state.nodes[OLD].status == "booting"
    sim_state.ingest(f"{OLD}/status", json.dumps({"state": "running"}))
    assert sim_state.nodes[OLD].status == "running"


def test_stale_nodes_report_offline(sim_app, sim_state, clock):
    sim_state.ingest(f"nodes/{OLD}/status", json.dumps({"state": "running"}))
    http = sim_app.test_client()
    assert http.get("/api/nodes").get_json()[OLD]["status"] == "running"
    clock.t += 11
    assert http.get("/api/nodes").get_json()[OLD]["status"] == "offline"
    # stored record untouched
    assert sim_state.nodes[OLD].status == "running"


def test_new_id_for_known_mac_inherits_config(sim_state):
    sim_state.ingest(f"nodes/{OLD}/status", "running")
    sim_state.nodes[OLD].ck = "ck1"
    sim_state.nodes[OLD].area = "north"
    sim_state.ingest(f"nodes/{NEW}/status", "running")
    assert OLD not in sim_state.nodes
    assert sim_state.nodes[NEW].ck == "ck1"
    assert sim_state.nodes[NEW].area == "north"


def test_snapshot_keeps_most_recent_id_per_mac(sim_state):
    sim_state.nodes[OLD] = SimNode(status="running", updated="2024-01-01 10:00:00")
    sim_state.nodes[NEW] = SimNode(status="running", updated="2024-01-01 10:00:05")
    snap = sim_state.snapshot()
    assert NEW in snap
    assert OLD not in snap


def test_delete_by_mac_removes_every_alias(sim_app, sim_state):
    sim_state.nodes[OLD] = SimNode(status="running")
    sim_state.nodes[NEW] = SimNode(status="running")
    http = sim_app.test_client()
    resp = http.delete(f"/api/nodes/{NEW}")
    assert resp.status_code == 200
    assert resp.get_json()["count"] == 2
    assert sim_state.nodes == {}
    assert http.delete(f"/api/nodes/{NEW}").status_code == 404


def test_rename_rejects_dot_names(uploads, clock):
    (uploads / "a.bin").write_bytes(b"x")
    app = create_backend(str(uploads), clock=clock)
    http = app.test_client()
    assert http.post("/api/files/a.bin/rename", json={"new_name": ".."}).status_code == 400
    assert http.post("/api/files/a.bin/rename", json={"new_name": ""}).status_code == 400
    ok = http.post("/api/files/a.bin/rename", json={"new_name": "b.bin"})
    assert ok.status_code == 200
    assert ok.get_json()["url"] == "/files/b.bin"
    assert (uploads / "b.bin").exists()


def test_logs_endpoint(sim_app, sim_state):
    http = sim_app.test_client()
    assert http.get(f"/logs/{OLD}").status_code == 404
    sim_state.ingest(f"nodes/{OLD}/log", "hello")
    assert http.get(f"/logs/{OLD}").get_json() == {"node": OLD, "logs": ["hello"]}


def test_set_threshold_alias(sim_app, sim_state):
    http = sim_app.test_client()
    resp = http.post("/set-threshold", json={"node": OLD, "min": 1, "max": 2})
    assert resp.status_code == 200
    assert sim_state.published[-1][1]["cmd"] == "set_threshold"
    assert http.post("/config", json={"min": 1}).status_code == 400


def test_seed_demo_populates_three_nodes(sim_state):
    seed_demo(sim_state)
    snap = sim_state.snapshot()
    assert len(snap) == 3
    assert snap["lab-B1-DEADBEEF0001"]["status"] == "offline"
    assert snap["site-A1-AABBCCDDEEFF"]["logs"] == ["boot ok (running)"]
