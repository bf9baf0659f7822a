"""Chat room domain: messages, users and the durable store contract."""
from .entity import Message, MessageKind, User, format_timestamp, parse_timestamp
from .store import ChatStore

__all__ = [
    "ChatStore",
    "Message",
    "MessageKind",
    "User",
    "format_timestamp",
    "parse_timestamp",
]
