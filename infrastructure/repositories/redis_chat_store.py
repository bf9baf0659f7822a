"""Redis-backed ChatStore.

Layout (under the client's namespace):
  - ``chat:messages``  sorted set, member = JSON message, score = epoch seconds
  - ``chat:users``     hash, field = username, value = JSON user record
"""
from __future__ import annotations

import json
from typing import Dict, List

from core.logging_config import get_logger
from domain.chat.entity import Message, User
from domain.chat.store import ChatStore
from infrastructure.external.cache import RedisClient


logger = get_logger(__name__)

MESSAGES_KEY = "chat:messages"
USERS_KEY = "chat:users"


class RedisChatStore(ChatStore):
    def __init__(self, client: RedisClient, *, message_cap: int = 1000) -> None:
        self._client = client
        self._cap = max(1, int(message_cap))

    async def save_message(self, message: Message) -> None:
        member = json.dumps(message.to_dict(), ensure_ascii=False, separators=(",", ":"))
        await self._client.zadd(MESSAGES_KEY, {member: message.timestamp.timestamp()})
        # keep only the newest `cap` members
        await self._client.zremrangebyrank(MESSAGES_KEY, 0, -(self._cap + 1))

    async def save_user(self, user: User) -> None:
        await self._client.hset(USERS_KEY, user.name, user.to_record())

    async def load_recent_messages(self, count: int) -> List[Message]:
        if count <= 0:
            return []
        records = await self._client.zrange(MESSAGES_KEY, 0, count - 1, desc=True)
        messages: List[Message] = []
        for record in reversed(records):
            if not isinstance(record, dict):
                logger.warning("redis_message_record_invalid", record=str(record)[:200])
                continue
            try:
                messages.append(Message.from_dict(record))
            except ValueError as exc:
                logger.warning("redis_message_decode_failed", error=str(exc))
        return messages

    async def load_all_users(self) -> Dict[str, User]:
        data = await self._client.hgetall(USERS_KEY)
        users: Dict[str, User] = {}
        for username, record in data.items():
            if not isinstance(record, dict):
                logger.warning("redis_user_record_invalid", username=username)
                continue
            try:
                users[username] = User.from_record(record, name=username)
            except ValueError as exc:
                logger.warning("redis_user_decode_failed", username=username, error=str(exc))
        return users

    async def health_check(self) -> bool:
        return await self._client.health_check()
