import json

import pytest

from errors import MalformedMessage, UnknownMessageType
from schemas.messages import JoinMessage, OfferMessage, parse_client_message


def test_parse_dispatches_on_type():
    message = parse_client_message(json.dumps({"type": "join", "roomId": "r1", "username": "Alice"}))
    assert isinstance(message, JoinMessage)
    assert message.roomId == "r1" and message.username == "Alice"


def test_join_fields_may_be_missing():
    message = parse_client_message('{"type": "join"}')
    assert message.roomId is None and message.username is None


@pytest.mark.parametrize("frame", ["not json", "[1, 2]", '"join"', '{"roomId": "r1"}', '{"type": 5}'])
def test_malformed_frames(frame):
    with pytest.raises(MalformedMessage):
        parse_client_message(frame)


def test_unknown_type_is_reported_separately():
    with pytest.raises(UnknownMessageType) as excinfo:
        parse_client_message('{"type": "leave"}')
    assert excinfo.value.message_type == "leave"


def test_field_of_wrong_type_is_malformed():
    with pytest.raises(MalformedMessage):
        parse_client_message('{"type": "join", "roomId": ["r1"], "username": "Alice"}')


def test_relay_payload_keeps_fields_and_strips_routing():
    message = parse_client_message(json.dumps({
        "type": "offer",
        "offer": {"type": "offer", "sdp": "v=0"},
        "to": "b",
        "roomId": "r1",
        "extra": 1,
    }))
    assert isinstance(message, OfferMessage)
    assert message.relay_payload("a") == {
        "type": "offer",
        "offer": {"type": "offer", "sdp": "v=0"},
        "extra": 1,
        "from": "a",
    }


def test_bytes_frames_are_accepted():
    message = parse_client_message(b'{"type": "stop-presenting", "roomId": "r1"}')
    assert message.type == "stop-presenting"


def test_relay_payload_omits_fields_the_client_left_out():
    message = parse_client_message(json.dumps({"type": "ice-candidate", "to": "b", "sdpMid": "0"}))
    assert message.relay_payload("a") == {"type": "ice-candidate", "sdpMid": "0", "from": "a"}
