"""Per-subscriber delivery channel.

A bounded queue written by the broadcaster with non-blocking sends and
read by exactly one stream session. Overflow never blocks the writer.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Optional

from core.logging_config import get_logger
from domain.chat.entity import Message


logger = get_logger(__name__)

OVERFLOW_POLICIES = {"drop_new", "drop_oldest", "disconnect"}


class ChannelClosed(Exception):
    """Raised by ``receive`` once the channel has been closed and drained."""


class DeliveryChannel:
    def __init__(self, *, maxsize: int = 10, overflow_policy: str = "drop_new", owner: Optional[str] = None) -> None:
        policy = (overflow_policy or "drop_new").lower()
        if policy not in OVERFLOW_POLICIES:
            logger.warning("channel_overflow_policy_invalid", policy=policy, fallback="drop_new")
            policy = "drop_new"
        self.token = uuid.uuid4().hex
        self.owner = owner
        self.policy = policy
        self.dropped = 0
        self._queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=max(1, int(maxsize)))
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return f"DeliveryChannel(token={self.token!r}, owner={self.owner!r})"

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    def qsize(self) -> int:
        return self._queue.qsize()

    def offer(self, message: Message) -> bool:
        """Non-blocking send. Returns False when the message was not queued."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            pass

        self.dropped += 1
        if self.policy == "disconnect":
            logger.warning("channel_overflow_disconnect", token=self.token, owner=self.owner)
            self.close()
            return False
        if self.policy == "drop_oldest":
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            try:
                self._queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("channel_drop_after_trim", token=self.token, owner=self.owner)
                return False
            logger.warning("channel_drop_oldest", token=self.token, owner=self.owner, dropped=self.dropped)
            return True
        logger.warning("channel_drop_new", token=self.token, owner=self.owner, dropped=self.dropped)
        return False

    async def receive(self, timeout: Optional[float] = None) -> Message:
        """Wait for the next message; raise ChannelClosed after close().

        With ``timeout`` set, raises asyncio.TimeoutError when nothing arrives in time.
        """
        if self.closed and self._queue.empty():
            raise ChannelClosed(self.token)
        get_task = asyncio.ensure_future(self._queue.get())
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({get_task, closed_task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed_task.cancel()
            if not get_task.done():
                get_task.cancel()
        if get_task.done() and not get_task.cancelled():
            return get_task.result()
        if self.closed:
            raise ChannelClosed(self.token)
        raise asyncio.TimeoutError()

    def close(self) -> None:
        """Stop accepting messages and wake a pending receive."""
        if self.closed:
            return
        self._closed.set()
        # discard whatever is still buffered
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
