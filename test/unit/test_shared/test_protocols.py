"""
Tests for the wire message format.
"""

import json

import pytest

from doodlehub.shared.errors import ProtocolError
from doodlehub.shared.protocols import PAYLOAD_FIELDS, Message, MessageType


def test_every_type_has_a_payload_schema():
    assert set(PAYLOAD_FIELDS) == set(MessageType)


def test_message_json_shape():
    msg = Message(MessageType.CHAT, {"playerName": "Alice", "message": "hi"}, sender_id="p1")
    data = json.loads(msg.to_json())
    # sender_id is filled in by the receiving transport, never sent
    assert data == {"type": "chat", "payload": {"playerName": "Alice", "message": "hi"}}


def test_from_json_sets_sender():
    msg = Message.from_json('{"type": "guess", "payload": {"playerName": "A", "message": "cat"}}', sender_id="p9")
    assert msg.type is MessageType.GUESS
    assert msg.sender_id == "p9"
    assert msg.payload["message"] == "cat"


def test_string_type_is_coerced():
    assert Message("playAgain").type is MessageType.PLAY_AGAIN


def test_unknown_type_rejected():
    with pytest.raises(ProtocolError):
        Message.from_json('{"type": "teleport", "payload": {}}')


def test_missing_field_rejected():
    with pytest.raises(ProtocolError):
        Message(MessageType.CORRECT_GUESS, {"playerId": "p1", "playerName": "A"})


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"payload": {}}'])
def test_malformed_input_rejected(raw):
    with pytest.raises(ProtocolError):
        Message.from_json(raw)


def test_payload_must_be_object():
    with pytest.raises(ProtocolError):
        Message.from_dict({"type": "chat", "payload": ["x"]})
