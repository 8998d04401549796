"""
Per-customer mutual exclusion port.

Wallet mutations for one customer are serialized through this lock; different
customers never contend.
"""
from __future__ import annotations

from typing import AsyncContextManager, Protocol, runtime_checkable


@runtime_checkable
class CustomerLockProvider(Protocol):
    def lock(self, customer_id: str) -> AsyncContextManager[None]: ...
