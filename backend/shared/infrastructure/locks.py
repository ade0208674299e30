"""
Keyed asyncio lock manager.

Serializes work on the same key (a provider payment id) while letting
different keys proceed concurrently. Locks are reference counted and dropped
once no coroutine holds or waits on them, so the table stays bounded by the
number of in-flight keys.

Only coordinates coroutines inside one process; cross-process safety comes
from the database row lock taken by the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from shared.config.logging import get_logger

logger = get_logger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLockManager:
    """
    Per-key asyncio locks.

    Usage:
        locks = KeyedLockManager()
        async with locks.hold("MP123"):
            ...
    """

    def __init__(self) -> None:
        # Dict mutations never cross an await, so no meta-lock is needed
        self._entries: dict[str, _Entry] = {}
        self._acquisitions = 0

    @property
    def lock_count(self) -> int:
        """Number of keys currently held or waited on."""
        return len(self._entries)

    @property
    def acquisitions_total(self) -> int:
        return self._acquisitions

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        entry.users += 1

        try:
            await entry.lock.acquire()
        except BaseException:
            self._release_entry(key, entry)
            raise

        self._acquisitions += 1
        try:
            yield
        finally:
            entry.lock.release()
            self._release_entry(key, entry)

    def _release_entry(self, key: str, entry: _Entry) -> None:
        entry.users -= 1
        if entry.users == 0 and self._entries.get(key) is entry:
            del self._entries[key]

    def get_stats(self) -> dict[str, int]:
        return {
            "active_keys": self.lock_count,
            "acquisitions_total": self._acquisitions,
        }
