"""
Per-key asyncio locks.

Used to serialize mutations per target identity and broker registry changes
per event type. Locks are created on demand and dropped once nobody holds or
waits for them.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable, Optional

from ..core.errors import ConflictError


class KeyedLocks:
    """
    Usage:
        locks = KeyedLocks()
        async with locks.hold(("Photo", "p1"), timeout=5.0):
            ...  # at most one holder per key

    Several keys are acquired in a fixed order so overlapping multi-key
    holders cannot deadlock.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    def _ref(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._refs[key] = self._refs.get(key, 0) + 1
        return lock

    def _unref(self, key: Hashable):
        self._refs[key] -= 1
        if self._refs[key] == 0:
            del self._refs[key]
            del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, *keys: Hashable, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """
        Hold the locks of every key.

        Raises:
            ConflictError: a lock was not obtained within timeout
        """
        acquired: list[Hashable] = []
        try:
            for key in sorted(set(keys), key=repr):
                lock = self._ref(key)
                try:
                    if timeout is None:
                        await lock.acquire()
                    else:
                        await asyncio.wait_for(lock.acquire(), timeout)
                except asyncio.TimeoutError:
                    self._unref(key)
                    raise ConflictError(f"Timed out waiting for a concurrent write on {key}")
                except BaseException:
                    self._unref(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._unref(key)
