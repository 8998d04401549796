"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    GatewayOrder,
    GatewayOrderRequest,
    GatewayRefund,
    GatewayRefundRequest,
    WebhookEvent,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    Failures surface as GatewayException; adapters never touch local state.
    """

    provider: str
    # Public key handed to the checkout widget
    key_id: Optional[str]

    async def create_order(self, req: GatewayOrderRequest) -> GatewayOrder: ...

    async def refund(self, req: GatewayRefundRequest) -> GatewayRefund: ...

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent: ...

    async def aclose(self) -> None: ...
