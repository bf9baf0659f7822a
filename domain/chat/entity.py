"""
聊天室领域实体 - Message / User
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """Render as RFC3339 in UTC with a `Z` suffix."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = ts.astimezone(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC3339 string; naive values are taken as UTC.

    Raises ValueError on anything that is not a timestamp.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class MessageKind(str, Enum):
    MESSAGE = "message"
    JOIN = "join"
    LEAVE = "leave"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """One entry of the room history. Never mutated after creation."""

    sender: str
    content: str
    timestamp: datetime = field(default_factory=utc_now)
    kind: MessageKind = MessageKind.MESSAGE

    @classmethod
    def chat(cls, sender: str, content: str) -> "Message":
        return cls(sender=sender, content=content, kind=MessageKind.MESSAGE)

    @classmethod
    def join_notice(cls, system_sender: str, username: str) -> "Message":
        return cls(
            sender=system_sender,
            content=f"User {username} joined the chat",
            kind=MessageKind.JOIN,
        )

    @classmethod
    def leave_notice(cls, system_sender: str, username: str) -> "Message":
        return cls(
            sender=system_sender,
            content=f"User {username} left the chat",
            kind=MessageKind.LEAVE,
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire representation, also used as the persisted record."""
        return {
            "sender": self.sender,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
            "type": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        try:
            return cls(
                sender=str(data["sender"]),
                content=str(data["content"]),
                timestamp=parse_timestamp(data["timestamp"]),
                kind=MessageKind(data.get("type") or MessageKind.MESSAGE.value),
            )
        except KeyError as exc:
            raise ValueError(f"message record missing field {exc}") from exc


@dataclass
class User:
    """用户记录 - 首次加入时创建，之后只原地更新，永不删除"""

    name: str
    last_seen: datetime = field(default_factory=utc_now)
    is_online: bool = True

    def mark_online(self, at: Optional[datetime] = None) -> None:
        self.is_online = True
        self.last_seen = at or utc_now()

    def mark_offline(self, at: Optional[datetime] = None) -> None:
        self.is_online = False
        self.last_seen = at or utc_now()

    def copy(self) -> "User":
        return User(name=self.name, last_seen=self.last_seen, is_online=self.is_online)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "last_seen": format_timestamp(self.last_seen),
            "is_online": self.is_online,
        }

    def to_record(self) -> dict[str, Any]:
        """Persisted shape, keyed by `username`."""
        return {
            "username": self.name,
            "last_seen": format_timestamp(self.last_seen),
            "is_online": self.is_online,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any], *, name: Optional[str] = None) -> "User":
        username = name or data.get("username") or data.get("name")
        if not username:
            raise ValueError("user record missing username")
        return cls(
            name=str(username),
            last_seen=parse_timestamp(data.get("last_seen", "")),
            is_online=bool(data.get("is_online", False)),
        )
