"""
Redis-based distributed lock.

Used by the retry sweeper so that only one process re-dispatches the
pending queue at a time.  It is an efficiency guard only: two sweepers
racing would still be safe because every assignment goes through the
compare-and-swap commit.

Implementation uses SET NX EX for acquire, and Lua scripts for atomic
check-and-delete on release and check-and-expire on refresh.
"""

from __future__ import annotations

import logging
import uuid

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

_RELEASE_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_REFRESH_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    """Raised by ``async with lock`` when another holder owns the key."""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        acquired = bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )
        if not acquired:
            logger.debug("Lock %s held elsewhere", self.key)
        return acquired

    async def refresh(self) -> bool:
        """Push the expiry out by another TTL if we still own the lock."""
        return bool(
            await self.redis.eval(_REFRESH_LUA, 1, self.key, self.token, self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        await self.redis.eval(_RELEASE_LUA, 1, self.key, self.token)

    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
