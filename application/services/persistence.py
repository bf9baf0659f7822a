"""Fire-and-forget persistence of room changes.

Writes run as detached tasks. The room never awaits them; a failure is
logged and counted, never raised into the caller and never retried.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Set

from core.logging_config import get_logger
from domain.chat.entity import Message, User
from domain.chat.store import ChatStore


logger = get_logger(__name__)


class BackgroundPersister:
    def __init__(self, store: Optional[ChatStore]) -> None:
        self._store = store
        self._tasks: Set[asyncio.Task] = set()
        self.failures = 0

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def save_message(self, message: Message) -> Optional[asyncio.Task]:
        if self._store is None:
            return None
        store = self._store
        return self._spawn("message", lambda: store.save_message(message))

    def save_user(self, user: User) -> Optional[asyncio.Task]:
        if self._store is None:
            return None
        store = self._store
        record = user.copy()
        return self._spawn("user", lambda: store.save_user(record))

    def _spawn(self, kind: str, op: Callable[[], Awaitable[None]]) -> asyncio.Task:
        task = asyncio.create_task(self._run(kind, op), name=f"chat-persist-{kind}")
        # strong reference until done, otherwise the task may be collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, kind: str, op: Callable[[], Awaitable[None]]) -> None:
        try:
            await op()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            logger.error("chat_persist_failed", kind=kind, error=str(exc), error_type=type(exc).__name__)

    async def drain(self, timeout: float = 5.0) -> None:
        """Give in-flight writes a bounded chance to finish (shutdown path)."""
        if not self._tasks:
            return
        pending = set(self._tasks)
        _done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            logger.warning("chat_persist_drain_timeout", cancelled=len(still_pending))
