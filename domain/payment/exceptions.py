"""
Payment domain exceptions.

A checkout signature mismatch is not raised: it is recorded on the
PaymentOrder, which moves to FAILED.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException, ResourceNotFoundException
from shared.codes.payment_codes import PaymentCode


class PaymentNotFoundException(ResourceNotFoundException):
    """支付记录不存在"""
    def __init__(self, identifier: str):
        super().__init__(
            f"Payment record not found: {identifier}",
            error_type="PaymentRecordNotFound",
            details={"identifier": identifier},
        )


class InvalidPaymentStateException(BusinessException):
    """Illegal lifecycle transition, e.g. refunding a payment that never succeeded."""
    def __init__(self, current: str, action: str, payment_id: Optional[int] = None):
        super().__init__(
            code=PaymentCode.INVALID_STATE,
            message=f"Cannot {action} payment in status {current}",
            error_type="InvalidState",
            details={"status": current, "action": action, "payment_id": payment_id},
            field="status",
        )


class GatewayException(BusinessException):
    """Remote gateway call failed; nothing was committed locally, safe to retry."""
    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        recoverable: bool = True,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "provider_code": provider_code, "retryable": recoverable}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.GATEWAY_RECOVERABLE if recoverable else PaymentCode.GATEWAY_ERROR,
            message=message,
            error_type="GatewayError",
            details=full_details,
        )
        self.provider = provider
        self.provider_code = provider_code
        self.recoverable = recoverable


class RefundFailedException(BusinessException):
    def __init__(self, payment_id: Optional[int], reason: str, *, details: Optional[dict] = None):
        full_details = {"payment_id": payment_id}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.REFUND_FAILED,
            message=f"Refund failed: {reason}",
            error_type="RefundFailed",
            details=full_details,
        )


class PaymentSignatureException(BusinessException):
    """Webhook payload whose signature header does not authenticate."""
    def __init__(self, message: str, *, provider: str):
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details={"provider": provider},
        )
