"""
Per-Channel Write Locks

Two flows that both spend from the same channel in the same month must not
interleave their "check availability, then write" steps, or both can pass
the check and together overdraw the channel.

DESIGN DECISION: One asyncio.Lock per (month, channel), created on first
use and kept for the life of the process. When a flow needs several
channels it takes them in sorted order so two flows can never wait on
each other.

This only serializes writers inside one process. Multiple processes
sharing a store need the store's own transactions.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from cashbook.models.ledger import Channel


class ChannelLockRegistry:
    """Hands out the lock for a (month, channel) pair."""

    def __init__(self):
        self._locks: dict[tuple[str, Channel], asyncio.Lock] = {}

    def lock_for(self, month: str, channel: Channel) -> asyncio.Lock:
        key = (month, channel)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def acquire(self, month: str, *channels: Optional[Channel]) -> AsyncIterator[None]:
        """Hold the locks for every given channel in ``month``."""
        ordered = sorted({c for c in channels if c is not None}, key=lambda c: c.value)
        held: list[asyncio.Lock] = []
        try:
            for channel in ordered:
                lock = self.lock_for(month, channel)
                await lock.acquire()
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                lock.release()
