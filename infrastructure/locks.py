"""
客户级互斥锁实现

- InMemoryCustomerLocks: 单进程内按客户ID维护 asyncio.Lock
- RedisCustomerLocks: 多实例部署时使用 Redis 分布式锁
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from application.ports.locks import CustomerLockProvider
from core.config import settings
from core.logging_config import get_logger
from infrastructure.external.cache import RedisClient, peek_redis_client


logger = get_logger(__name__)


class InMemoryCustomerLocks(CustomerLockProvider):
    """Lock arena keyed by customer id. Entries are dropped once nobody holds or waits on them."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._refs: Dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, customer_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(customer_id)
        if lock is None:
            lock = self._locks[customer_id] = asyncio.Lock()
        self._refs[customer_id] = self._refs.get(customer_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refs[customer_id] -= 1
            if self._refs[customer_id] == 0:
                del self._refs[customer_id]
                del self._locks[customer_id]

    def __len__(self) -> int:
        return len(self._locks)


class RedisCustomerLocks(CustomerLockProvider):
    def __init__(self, cache: RedisClient, *, timeout: int = 10, blocking_timeout: int = 5) -> None:
        self._cache = cache
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def lock(self, customer_id: str) -> AsyncIterator[None]:
        async with self._cache.lock(
            f"wallet:{customer_id}",
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        ):
            yield


_in_memory_locks = InMemoryCustomerLocks()


def get_customer_locks() -> CustomerLockProvider:
    """Redis 已初始化时使用分布式锁，否则回退到进程内锁"""
    cache = peek_redis_client()
    if cache is not None:
        return RedisCustomerLocks(
            cache,
            timeout=settings.wallet.lock_timeout,
            blocking_timeout=settings.wallet.lock_blocking_timeout,
        )
    return _in_memory_locks
