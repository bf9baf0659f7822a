"""Room state: the single owner of history, users and subscriber channels.

All mutations happen under one ``asyncio.Lock``. Critical sections never
await I/O, so a slow subscriber or a slow store cannot stall the room.
Readers take the same lock only long enough to copy.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from domain.chat.entity import Message, User
from infrastructure.realtime.channel import DeliveryChannel


@dataclass(frozen=True)
class RoomCounters:
    messages_total: int
    users_total: int
    users_active: int
    subscribers: int


class RoomState:
    def __init__(self) -> None:
        self._messages: List[Message] = []
        self._users: Dict[str, User] = {}
        self._channels: Set[DeliveryChannel] = set()
        self._lock = asyncio.Lock()

    # -------------------- startup --------------------
    async def restore(self, messages: Iterable[Message], users: Iterable[User]) -> None:
        """Seed state loaded from the durable store. Existing entries win."""
        async with self._lock:
            restored = list(messages)
            self._messages[:0] = restored
            for user in users:
                self._users.setdefault(user.name, user.copy())

    # -------------------- users --------------------
    async def mark_online(self, username: str) -> Tuple[bool, User]:
        """Create or re-activate a user. Returns (created, copy of record)."""
        async with self._lock:
            user = self._users.get(username)
            created = user is None
            if created:
                user = User(name=username)
                self._users[username] = user
            else:
                user.mark_online()
            return created, user.copy()

    async def mark_offline(self, username: str) -> Optional[User]:
        """Flip a known user offline; unknown names are a no-op (None)."""
        async with self._lock:
            user = self._users.get(username)
            if user is None:
                return None
            user.mark_offline()
            return user.copy()

    # -------------------- history --------------------
    async def append(self, message: Message) -> List[DeliveryChannel]:
        """Append to history and return the channels registered at that instant."""
        async with self._lock:
            self._messages.append(message)
            return list(self._channels)

    async def snapshot(self) -> List[Message]:
        async with self._lock:
            return list(self._messages)

    async def tail(self, limit: int) -> Tuple[List[Message], int]:
        """Last `limit` messages and the total history length."""
        async with self._lock:
            total = len(self._messages)
            return list(self._messages[max(0, total - limit):]), total

    async def online_users(self) -> List[User]:
        async with self._lock:
            return [u.copy() for u in self._users.values() if u.is_online]

    # -------------------- subscribers --------------------
    async def register(self, channel: DeliveryChannel) -> List[Message]:
        """Add a channel and return the history it has not been sent.

        Registration and snapshot happen in one critical section so every
        message is either in the returned replay or delivered live, never both.
        """
        async with self._lock:
            self._channels.add(channel)
            return list(self._messages)

    async def unregister(self, channel: DeliveryChannel) -> None:
        async with self._lock:
            self._channels.discard(channel)

    async def counters(self) -> RoomCounters:
        async with self._lock:
            return RoomCounters(
                messages_total=len(self._messages),
                users_total=len(self._users),
                users_active=sum(1 for u in self._users.values() if u.is_online),
                subscribers=len(self._channels),
            )
