"""
Keyed asyncio mutex.

Commits for the same (date, service) key run one at a time; commits for
different keys never wait on each other. A key's lock lives only while some
coroutine holds it or is queued for it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Hashable

from app.errors import LockTimeoutError

logger = logging.getLogger(__name__)


class KeyedLock:
    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @contextlib.asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for ``key``; raises LockTimeoutError on timeout."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.warning("Lock %r not acquired within %ss", key, self._timeout)
                raise LockTimeoutError(key, self._timeout or 0.0) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]
