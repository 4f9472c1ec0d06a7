"""Per-key async locks.

Job updates are read-modify-write against the store. Two requests for the same
job (a transition racing a position fix) must not interleave, while requests
for different jobs must never wait on each other. ``KeyedLock`` hands out one
``asyncio.Lock`` per key and forgets it once nobody holds or waits on it.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLock:
    """A registry of asyncio locks, one per key."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Serialize the enclosed block with every other holder of ``key``."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


_job_locks: KeyedLock | None = None


def get_job_locks() -> KeyedLock:
    """Get the process-wide job lock registry."""
    global _job_locks
    if _job_locks is None:
        _job_locks = KeyedLock()
    return _job_locks
