from datetime import datetime, timezone

from nightvibe.domain.chat.models import NO_CONTENT
from nightvibe.domain.chat.normalize import encode_message, normalize_message, parse_timestamp
from nightvibe.infra.store import SERVER_TIMESTAMP


def test_legacy_spellings_converge_on_canonical_fields():
    message = normalize_message(
        "m1",
        {
            "senderrId": "u1",
            "receiverrId": "u2",
            "senderrName": "alex",
            "message": "hello there",
            "timestamp": "2024-05-01T10:00:00Z",
        },
    )
    assert message.sender_id == "u1"
    assert message.receiver_id == "u2"
    assert message.sender_name == "alex"
    assert message.content == "hello there"
    assert message.timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_canonical_fields_win_over_legacy_ones():
    message = normalize_message(
        "m2",
        {"senderId": "u1", "senderrId": "old", "receiverId": "u2", "content": "new", "message": "old"},
    )
    assert message.sender_id == "u1"
    assert message.content == "new"


def test_missing_body_falls_back_to_placeholder():
    message = normalize_message("m3", {"senderId": "u1", "receiverId": "u2"})
    assert message.content == NO_CONTENT
    assert message.timestamp is None
    assert message.is_anonymous is False


def test_parse_timestamp_accepts_store_shapes():
    expected = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp(expected.replace(tzinfo=None)) == expected
    assert parse_timestamp(1704067200000) == expected
    assert parse_timestamp({"seconds": 1704067200, "nanoseconds": 0}) == expected
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(True) is None


def test_encode_message_writes_both_body_keys_and_marks_sender_read():
    data = encode_message("u1", "u2", "hi", anonymous=True, sender_name="alex")
    assert data["content"] == data["message"] == "hi"
    assert data["senderName"] == "Anonymous"
    assert data["readBy"] == ["u1"]
    assert data["participants"] == ["u1", "u2"]
    assert data["timestamp"] is SERVER_TIMESTAMP
