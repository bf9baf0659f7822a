"""Broadcaster: append to history, persist in the background, fan out."""
from __future__ import annotations

from dataclasses import dataclass

from application.services.persistence import BackgroundPersister
from application.services.room_state import RoomState
from core.logging_config import get_logger
from domain.chat.entity import Message


logger = get_logger(__name__)


@dataclass(frozen=True)
class PublishResult:
    delivered: int
    skipped: int


class Broadcaster:
    def __init__(self, *, room: RoomState, persister: BackgroundPersister) -> None:
        self._room = room
        self._persister = persister

    async def publish(self, message: Message) -> PublishResult:
        targets = await self._room.append(message)
        # No await between append and the sends below: every subscriber sees
        # messages in history order.
        delivered = 0
        for channel in targets:
            if channel.offer(message):
                delivered += 1
        self._persister.save_message(message)
        skipped = len(targets) - delivered
        logger.debug(
            "chat_message_published",
            kind=message.kind.value,
            sender=message.sender,
            delivered=delivered,
            skipped=skipped,
        )
        return PublishResult(delivered=delivered, skipped=skipped)
