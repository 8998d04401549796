"""
Order collaborator port: tells the marketplace order service how its payment went.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


# Statuses understood by the order service
ORDER_PAYMENT_PAID = "PAID"
ORDER_PAYMENT_FAILED = "FAILED"
ORDER_PAYMENT_REFUNDED = "REFUNDED"


@runtime_checkable
class OrderPaymentNotifier(Protocol):
    async def set_payment_status(
        self,
        order_id: str,
        status: str,
        transaction_id: Optional[str] = None,
    ) -> None: ...

    async def aclose(self) -> None: ...
