"""Keyed task locks serializing schema, property and file mutations."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


class TaskLocks:
    """One ``asyncio.Lock`` per key, created on demand and dropped when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, *key_parts: str) -> AsyncGenerator[None]:
        key = "/".join(key_parts)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_held(self, *key_parts: str) -> bool:
        lock = self._locks.get("/".join(key_parts))
        return lock is not None and lock.locked()


task_locks = TaskLocks()


def table_lock_key(app_id: str, table_id: str) -> tuple[str, str, str]:
    return ("table", app_id, table_id)
