"""Mutual exclusion for portal state transitions"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from fieldoffice.governance.errors import LockUnavailable
from fieldoffice.utils.constants import LOCK_SETTINGS

logger = logging.getLogger('FieldOffice')

class LockProvider(Protocol):
    def acquire(self, key: str) -> AsyncContextManager[None]:
        ...

class LocalLockProvider:
    """asyncio locks keyed by name, for a single-process deployment"""

    def __init__(self):
        self._locks: 'weakref.WeakValueDictionary[str, asyncio.Lock]' = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._lock_for(key)
        async with lock:
            yield

class RedisLockProvider:
    """Redis-backed locks so several portal workers serialise state transitions"""

    def __init__(self,
                 client: redis.Redis,
                 timeout: Optional[float] = None,
                 blocking_timeout: Optional[float] = None,
                 prefix: str = LOCK_SETTINGS['KEY_PREFIX']):
        self.client = client
        self.timeout = timeout if timeout is not None else LOCK_SETTINGS['TIMEOUT']
        self.blocking_timeout = (
            blocking_timeout if blocking_timeout is not None else LOCK_SETTINGS['BLOCKING_TIMEOUT']
        )
        self.prefix = prefix

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        name = f"{self.prefix}:{key}"
        lock = self.client.lock(
            name,
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error(f"Error acquiring lock {name}: {e}")
            raise LockUnavailable() from e

        if not acquired:
            logger.warning(f"Timed out waiting for lock {name}")
            raise LockUnavailable()

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Expired before release; the holder's work is already applied
                logger.warning(f"Lock {name} was no longer held at release: {e}")
