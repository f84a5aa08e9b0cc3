import pytest

from fleet.models import (
    ConfigPayload,
    FileEntry,
    NodeInfo,
    parse_files,
    parse_nodes,
    parse_number,
    parse_timestamp,
)


def test_node_info_tolerates_garbage_fields():
    info = NodeInfo.from_json({
        "status": "running",
        "ram_free_bytes": "lots",
        "sd_ok": "yes",
        "logs": "not-a-list",
    })
    assert info.status == "running"
    assert info.ram_free_bytes is None
    assert info.sd_ok is None
    assert info.logs == ()


def test_node_info_missing_status_stays_none():
    assert NodeInfo.from_json({}).status is None
    assert NodeInfo.from_json(None) == NodeInfo()


def test_parse_nodes_requires_object():
    with pytest.raises(ValueError):
        parse_nodes([])
    nodes = parse_nodes({"a": {"status": "offline", "ck": "c"}})
    assert nodes["a"].ck == "c"


def test_parse_files_drops_nameless_and_fills_url():
    files = parse_files([{"name": "a.bin"}, {"url": "/files/x"}, "junk"])
    assert files == [FileEntry(name="a.bin", url="/files/a.bin")]
    assert parse_files(None) == []
    with pytest.raises(ValueError):
        parse_files({"name": "a"})


@pytest.mark.parametrize("text, expected", [
    ("16", 16.0),
    (" 20.5 ", 20.5),
    ("-3", -3.0),
    ("abc", None),
    ("", None),
    ("nan", None),
    ("inf", None),
    (None, None),
])
def test_parse_number(text, expected):
    assert parse_number(text) == expected


def test_parse_timestamp_handles_go_nanoseconds():
    ts = parse_timestamp("2024-05-01T10:20:30.123456789Z")
    assert ts is not None
    assert (ts.year, ts.microsecond) == (2024, 123456)
    assert ts.utcoffset().total_seconds() == 0


def test_parse_timestamp_zero_value_and_junk():
    assert parse_timestamp("0001-01-01T00:00:00Z") is None
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


def test_config_payload_shape():
    body = ConfigPayload(node="n", min=16.0, max=20.0, ck="c").to_json()
    assert body == {"node": "n", "min": 16.0, "max": 20.0, "ck": "c", "area": "", "no": ""}
