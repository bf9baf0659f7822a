"""Pytest bootstrap configuration.

Pin the environment before application settings are imported so tests
never reach a real Redis and the periodic room check stays off.
"""
import os

import pytest

os.environ.pop("REDIS__URL", None)
os.environ.setdefault("CHAT__STORE", "memory")
os.environ.setdefault("CHAT__MONITOR_INTERVAL_SECONDS", "0")
os.environ.setdefault("CHAT__STREAM_KEEPALIVE_SECONDS", "0.05")

from application.services.chat_service import ChatService  # noqa: E402
from application.services.room_state import RoomState  # noqa: E402
from infrastructure.repositories.memory_chat_store import InMemoryChatStore  # noqa: E402


@pytest.fixture
def room() -> RoomState:
    return RoomState()


@pytest.fixture
def store() -> InMemoryChatStore:
    return InMemoryChatStore(message_cap=1000)


@pytest.fixture
def service(room: RoomState, store: InMemoryChatStore) -> ChatService:
    return ChatService(room=room, store=store, system_sender="System")
