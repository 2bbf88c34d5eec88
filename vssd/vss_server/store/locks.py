from __future__ import annotations

import asyncio


class StoreLockRegistry:
    """
    Provides one lock per store_id so writers to different stores never contend.

    A lock only lives while some writer holds or waits for it, so the registry
    does not grow with every store_id ever named.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    async def acquire(self, store_id: str) -> None:
        lock = self._locks.get(store_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[store_id] = lock
        self._users[store_id] = self._users.get(store_id, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(store_id)
            raise

    def release(self, store_id: str) -> None:
        self._locks[store_id].release()
        self._forget(store_id)

    def _forget(self, store_id: str) -> None:
        remaining = self._users[store_id] - 1
        if remaining:
            self._users[store_id] = remaining
        else:
            del self._users[store_id]
            del self._locks[store_id]

    def __len__(self) -> int:
        return len(self._locks)
