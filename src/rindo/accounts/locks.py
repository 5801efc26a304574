"""Per-account serialization for balance-changing critical sections.

The lock registry holds locks weakly: an entry disappears once no coroutine is
waiting on or holding it, so the registry never grows with the user base.
Cross-process exclusion comes from ``SELECT ... FOR UPDATE`` on the account row.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

_locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()


def _lock_for(account_id: int) -> asyncio.Lock:
    lock = _locks.get(account_id)
    if lock is None:
        lock = asyncio.Lock()
        _locks[account_id] = lock
    return lock


@asynccontextmanager
async def account_lock(account_id: int) -> AsyncIterator[None]:
    """Hold the in-process lock for one account. Never wrap a chain call in this."""
    lock = _lock_for(account_id)
    async with lock:
        yield
