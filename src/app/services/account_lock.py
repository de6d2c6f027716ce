"""Per-account write serialization

Every ledger-mutating operation for an account runs inside
``AccountLocks.hold(account_id)``. The in-process asyncio.Lock orders
coroutines of this process; the account write lock callers take inside it
(``AccountRepository.get_or_create(..., for_update=True)``) is held by the
database and orders writers across processes.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class AccountLocks:

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def for_account(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[None]:
        lock = self.for_account(account_id)
        async with lock:
            yield
