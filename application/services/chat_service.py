"""Application service for the chat room use-cases.

Orchestrates RoomState, the Broadcaster and background persistence. HTTP
handlers and stream sessions only ever talk to the room through here.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from application.services.broadcaster import Broadcaster
from application.services.persistence import BackgroundPersister
from application.services.room_state import RoomState
from core.logging_config import get_logger
from domain.chat.entity import Message, User
from domain.chat.store import ChatStore
from domain.common.exceptions import require_text


logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class ChatService:
    def __init__(
        self,
        *,
        room: RoomState,
        store: Optional[ChatStore] = None,
        system_sender: str = "System",
        history_default_limit: int = DEFAULT_HISTORY_LIMIT,
        startup_load_count: int = 1000,
    ) -> None:
        self._room = room
        self._store = store
        self._persister = BackgroundPersister(store)
        self._broadcaster = Broadcaster(room=room, persister=self._persister)
        self._system_sender = system_sender
        self._default_limit = history_default_limit if history_default_limit > 0 else DEFAULT_HISTORY_LIMIT
        self._startup_load_count = startup_load_count

    # -------------------- startup / shutdown --------------------
    async def restore(self) -> None:
        """Load recent history and users from the store.

        Each half fails independently; the room starts with whatever loaded.
        """
        if self._store is None:
            return
        messages: List[Message] = []
        users: List[User] = []
        try:
            messages = await self._store.load_recent_messages(self._startup_load_count)
        except Exception as exc:
            logger.error("chat_restore_messages_failed", error=str(exc), error_type=type(exc).__name__)
        try:
            users = list((await self._store.load_all_users()).values())
        except Exception as exc:
            logger.error("chat_restore_users_failed", error=str(exc), error_type=type(exc).__name__)
        await self._room.restore(messages, users)
        logger.info("chat_restored", messages=len(messages), users=len(users))

    async def aclose(self) -> None:
        await self._persister.drain()
        if self._store is not None:
            try:
                await self._store.aclose()
            except Exception as exc:
                logger.error("chat_store_close_failed", error=str(exc))

    # -------------------- use-cases --------------------
    async def join(self, username: Optional[str]) -> bool:
        """Join the room. Re-joining an existing name updates it in place.

        Returns True when a new user record was created.
        """
        username = require_text("username", username)
        created, user = await self._room.mark_online(username)
        self._persister.save_user(user)
        await self._broadcaster.publish(Message.join_notice(self._system_sender, username))
        logger.info("chat_user_joined", username=username, created=created)
        return created

    async def leave(self, username: Optional[str]) -> None:
        """Leave the room. The leave notice is broadcast even for unknown names."""
        username = require_text("username", username)
        user = await self._room.mark_offline(username)
        if user is not None:
            self._persister.save_user(user)
        await self._broadcaster.publish(Message.leave_notice(self._system_sender, username))
        logger.info("chat_user_left", username=username, known=user is not None)

    async def post(self, sender: Optional[str], content: Optional[str]) -> Message:
        sender = require_text("sender", sender)
        content = require_text("content", content)
        message = Message.chat(sender, content)
        await self._broadcaster.publish(message)
        logger.info("chat_message_posted", sender=sender, length=len(content))
        return message

    # -------------------- queries --------------------
    async def snapshot(self) -> List[Message]:
        return await self._room.snapshot()

    async def recent_users(self) -> List[User]:
        return await self._room.online_users()

    async def recent_history(self, limit: Optional[int] = None) -> Tuple[List[Message], int]:
        """Last `limit` messages plus total count; limit <= 0 or None uses the default."""
        if limit is None or limit <= 0:
            limit = self._default_limit
        return await self._room.tail(limit)

    async def status(self) -> dict:
        counters = await self._room.counters()
        return {
            "status": "online",
            "users_online": counters.subscribers,
            "users_active": counters.users_active,
            "users_total": counters.users_total,
            "messages_total": counters.messages_total,
            "subscribers": counters.subscribers,
            "pending_writes": self._persister.pending,
            "timestamp": datetime.now(timezone.utc),
        }

    async def store_health(self) -> str:
        """"none" without a store, otherwise "ok" or "unavailable"."""
        if self._store is None:
            return "none"
        try:
            healthy = await self._store.health_check()
        except Exception as exc:
            logger.warning("chat_store_health_failed", error=str(exc))
            healthy = False
        return "ok" if healthy else "unavailable"

    @property
    def room(self) -> RoomState:
        return self._room

    @property
    def persister(self) -> BackgroundPersister:
        return self._persister
