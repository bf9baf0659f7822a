"""Periodic room check: logs room counters, never mutates state."""
from __future__ import annotations

import asyncio
from typing import Optional

from application.services.chat_service import ChatService
from core.logging_config import get_logger


logger = get_logger(__name__)


class RoomMonitor:
    def __init__(self, service: ChatService, *, interval_seconds: float = 300.0) -> None:
        self._service = service
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._interval <= 0 or self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name="chat-room-monitor")

    async def check_once(self) -> dict:
        status = await self._service.status()
        status.pop("timestamp", None)
        status["persist_failures"] = self._service.persister.failures
        logger.info("chat_room_check", **status)
        return status

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            if self._stopping.is_set():
                break
            try:
                await self.check_once()
            except Exception as exc:
                logger.warning("chat_room_check_failed", error=str(exc))

    async def aclose(self) -> None:
        self._stopping.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
