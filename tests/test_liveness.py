import pytest

from fleet.liveness import Liveness, classify, partition
from fleet.models import NodeInfo
from fleet.render import render_nodes


@pytest.mark.parametrize("status, expected", [
    ("offline", Liveness.OFFLINE),
    ("OFFLINE", Liveness.OFFLINE),
    (" Offline ", Liveness.ONLINE),
    ("offline\n", Liveness.ONLINE),
    ("online", Liveness.ONLINE),
    ("running", Liveness.ONLINE),
    ("unknown", Liveness.ONLINE),
    ("offline-ish", Liveness.ONLINE),
    ("", Liveness.ONLINE),
    (None, Liveness.ONLINE),
])
def test_only_exact_offline_is_offline(status, expected):
    assert classify(status) is expected


def test_partition_sorts_each_group():
    nodes = {
        "b": NodeInfo(status="offline"),
        "c": NodeInfo(status="running"),
        "a": NodeInfo(),
        "d": NodeInfo(status="Offline"),
    }
    online, offline = partition(nodes)
    assert online == ["a", "c"]
    assert offline == ["b", "d"]


def test_padded_offline_status_is_grouped_online():
    view = render_nodes({"site-A1-AABBCCDDEEFF": NodeInfo(status="offline\n")})
    assert (view.online_count, view.offline_count) == (1, 0)
