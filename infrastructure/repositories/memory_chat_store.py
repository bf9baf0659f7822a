"""In-memory implementation of ChatStore.

Single-process only. Useful for local dev and tests; state is lost on
restart.
"""
from __future__ import annotations

import asyncio
from typing import Dict, List

from domain.chat.entity import Message, User
from domain.chat.store import ChatStore


class InMemoryChatStore(ChatStore):
    def __init__(self, *, message_cap: int = 1000) -> None:
        self._cap = max(1, int(message_cap))
        self._messages: List[Message] = []
        self._users: Dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def save_message(self, message: Message) -> None:
        async with self._lock:
            self._messages.append(message)
            self._messages.sort(key=lambda m: m.timestamp)
            if len(self._messages) > self._cap:
                del self._messages[: len(self._messages) - self._cap]

    async def save_user(self, user: User) -> None:
        async with self._lock:
            self._users[user.name] = user.to_record()

    async def load_recent_messages(self, count: int) -> List[Message]:
        if count <= 0:
            return []
        async with self._lock:
            return list(self._messages[-count:])

    async def load_all_users(self) -> Dict[str, User]:
        async with self._lock:
            return {name: User.from_record(rec, name=name) for name, rec in self._users.items()}
