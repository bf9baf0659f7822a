"""Subscription / stream sessions.

One session per connected client:
REGISTERING -> REPLAYING -> STREAMING -> CLOSED.
The session yields ready-to-write SSE frames; whatever ends the iteration
(client gone, channel closed, generator cancelled) runs the same cleanup.
"""
from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from application.services.room_state import RoomState
from core.logging_config import get_logger
from infrastructure.realtime.channel import ChannelClosed, DeliveryChannel


logger = get_logger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"

DisconnectProbe = Callable[[], Awaitable[bool]]


def encode_sse(data: dict) -> str:
    """Encode payload as one SSE `data:` event."""
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


class StreamState(str, Enum):
    REGISTERING = "registering"
    REPLAYING = "replaying"
    STREAMING = "streaming"
    CLOSED = "closed"


class StreamSession:
    def __init__(
        self,
        room: RoomState,
        username: str,
        *,
        queue_max: int = 10,
        overflow_policy: str = "drop_new",
        keepalive_seconds: float = 15.0,
        is_disconnected: Optional[DisconnectProbe] = None,
    ) -> None:
        self._room = room
        self.username = username
        self._keepalive = keepalive_seconds
        self._is_disconnected = is_disconnected
        self.channel = DeliveryChannel(maxsize=queue_max, overflow_policy=overflow_policy, owner=username)
        self.state = StreamState.REGISTERING
        self.sent = 0

    async def events(self) -> AsyncIterator[str]:
        history = await self._room.register(self.channel)
        logger.info("stream_opened", username=self.username, token=self.channel.token, replay=len(history))
        try:
            self.state = StreamState.REPLAYING
            for message in history:
                yield encode_sse(message.to_dict())
                self.sent += 1

            self.state = StreamState.STREAMING
            while True:
                try:
                    message = await self._next()
                except asyncio.TimeoutError:
                    if await self._transport_gone():
                        break
                    yield KEEPALIVE_FRAME
                    continue
                except ChannelClosed:
                    break
                yield encode_sse(message.to_dict())
                self.sent += 1
        finally:
            self.state = StreamState.CLOSED
            try:
                await self._room.unregister(self.channel)
            finally:
                self.channel.close()
                logger.info(
                    "stream_closed",
                    username=self.username,
                    token=self.channel.token,
                    sent=self.sent,
                    dropped=self.channel.dropped,
                )

    async def _next(self):
        if self._keepalive and self._keepalive > 0:
            return await self.channel.receive(timeout=self._keepalive)
        return await self.channel.receive()

    async def _transport_gone(self) -> bool:
        if self._is_disconnected is None:
            return False
        try:
            return await self._is_disconnected()
        except Exception as exc:
            logger.warning("stream_disconnect_probe_failed", username=self.username, error=str(exc))
            return True
