import orjson

from signcapture.core.landmarks import LandmarkResult
from signcapture.stream.holistic_client import make_event
from signcapture.ws_client import parse_event


def test_parse_relay_event(result_factory):
    raw = orjson.dumps(make_event(result_factory(right=False)))
    result = parse_event(raw)
    assert isinstance(result, LandmarkResult)
    assert len(result.pose) == 33
    assert len(result.left_hand) == 21
    assert result.right_hand is None


def test_parse_text_message():
    result = parse_event('{"landmarks": {"pose": null, "left_hand": null, "right_hand": null}}')
    assert result.pose is None


def test_parse_rejects_garbage():
    assert parse_event(b"\xff\xfe") is None
    assert parse_event("[1, 2, 3]") is None
    assert parse_event('{"landmarks": "nope"}') is None
