"""Per-key asyncio locks.

Mutations of the same ledger key are serialized in-process; different keys
proceed concurrently. Cross-process exclusion is the row lock taken by the
store (SELECT ... FOR UPDATE) plus the version-guarded UPDATE.

A key's lock lives only while someone holds or waits for it, so the registry
stays bounded by the number of keys in flight.
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._holders: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Serialize the body against every other holder of `key`."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        # counts waiters too, so a queued task keeps the lock alive
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


_registries: dict[str, KeyedLocks] = {}


def locks_for(name: str) -> KeyedLocks:
    """Process-wide lock registry for one ledger, shared by every service instance."""
    if name not in _registries:
        _registries[name] = KeyedLocks()
    return _registries[name]
