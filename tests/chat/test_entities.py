from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from domain.chat.entity import Message, MessageKind, User, format_timestamp, parse_timestamp
from domain.common.exceptions import InvalidArgumentException, require_text


def test_message_wire_shape_uses_rfc3339_utc():
    ts = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone(timedelta(hours=8)))
    msg = Message(sender="alice", content="hi", timestamp=ts)
    assert msg.to_dict() == {
        "sender": "alice",
        "content": "hi",
        "timestamp": "2024-05-01T04:30:00Z",
        "type": "message",
    }


def test_message_is_immutable():
    msg = Message.chat("alice", "hi")
    with pytest.raises(FrozenInstanceError):
        msg.content = "changed"  # type: ignore[misc]


def test_message_from_dict_rejects_missing_fields():
    with pytest.raises(ValueError):
        Message.from_dict({"sender": "a", "timestamp": "2024-01-01T00:00:00Z"})


def test_notices_carry_kind_and_system_sender():
    join = Message.join_notice("System", "bob")
    leave = Message.leave_notice("System", "bob")
    assert join.kind is MessageKind.JOIN and join.sender == "System" and "bob" in join.content
    assert leave.kind is MessageKind.LEAVE and "bob" in leave.content


def test_user_record_roundtrip_accepts_username_key():
    user = User(name="carol", last_seen=datetime(2024, 1, 2, tzinfo=timezone.utc), is_online=False)
    record = user.to_record()
    assert record["username"] == "carol"
    loaded = User.from_record(record)
    assert loaded == user


def test_user_online_flags_refresh_last_seen():
    earlier = datetime(2020, 1, 1, tzinfo=timezone.utc)
    user = User(name="dave", last_seen=earlier)
    user.mark_offline()
    assert user.is_online is False and user.last_seen > earlier
    user.mark_online()
    assert user.is_online is True


def test_parse_timestamp_treats_naive_as_utc():
    assert parse_timestamp("2024-01-01T00:00:00").tzinfo is not None
    assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00Z"
    with pytest.raises(ValueError):
        parse_timestamp("")


@pytest.mark.parametrize("value", [None, "", "   "])
def test_require_text_rejects_blank(value):
    with pytest.raises(InvalidArgumentException) as exc_info:
        require_text("content", value)
    assert exc_info.value.field == "content"
