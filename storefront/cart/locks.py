"""In-process per-identity locks ordering cart writes against the sign-in merge."""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from .models import IdentityRef


class TransitionLocks:
    """
    One asyncio.Lock per identity with work in flight.

    The merge holds the locks of both identities it touches; every engine
    mutation holds its identity's lock from load to save. A lock is created
    on first use and dropped once its last holder or waiter leaves, so the
    table only grows with concurrent activity. Nothing here is distributed:
    it only orders work inside one process.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}  # holders + waiters per key

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, identity: IdentityRef) -> AsyncIterator[None]:
        key = identity.key
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            self._users[key] = 0
        lock = self._locks[key]
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._locks[key]
                del self._users[key]

    def is_held(self, identity: IdentityRef) -> bool:
        lock = self._locks.get(identity.key)
        return lock is not None and lock.locked()

    async def wait_idle(self, identity: IdentityRef) -> None:
        """Return once no writer holds the identity's lock."""
        if self.is_held(identity):
            async with self.hold(identity):
                pass
