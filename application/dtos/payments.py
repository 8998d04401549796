"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Literal
from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator, model_validator

from domain.payment.entity import PaymentOrderStatus

# Common ISO-4217 currencies (extend as needed)
ISO_4217 = {
    "INR", "USD", "EUR", "GBP", "AED", "SGD", "AUD", "CAD", "JPY", "KRW",
}


def _upper_and_validate_currency(v: str) -> str:
    u = (v or "").upper()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    if u not in ISO_4217:
        raise ValueError("unsupported currency")
    return u


# ---------------------------------------------------------------------------
# Use-case inputs
# ---------------------------------------------------------------------------
class CreatePaymentOrder(BaseModel):
    # Positivity and currency precision are domain rules (InvalidAmount), not schema rules
    amount: Decimal
    currency: str = Field(default="INR")
    customer_id: str
    vendor_id: Optional[str] = None
    order_id: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, v: str) -> str:
        return _upper_and_validate_currency(v)


class VerifyPayment(BaseModel):
    """Proof returned by the checkout widget. Accepts the gateway's own field names too."""
    model_config = ConfigDict(populate_by_name=True)

    external_order_id: str = Field(validation_alias=AliasChoices("external_order_id", "razorpay_order_id"))
    external_payment_id: str = Field(validation_alias=AliasChoices("external_payment_id", "razorpay_payment_id"))
    signature: str = Field(validation_alias=AliasChoices("signature", "razorpay_signature"))
    order_id: Optional[str] = None


class RefundPayment(BaseModel):
    payment_id: Optional[int] = None
    external_payment_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None  # None or 0 = full refund
    reason: Optional[str] = None
    speed: Literal["normal", "optimum"] = "normal"

    @model_validator(mode="after")
    def _require_identifier(self):
        if self.payment_id is None and not self.external_payment_id:
            raise ValueError("payment_id or external_payment_id is required")
        return self


class MarkPaymentFailed(BaseModel):
    external_payment_id: str
    external_order_id: Optional[str] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None


# ---------------------------------------------------------------------------
# Use-case outputs
# ---------------------------------------------------------------------------
class PaymentOrderDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int]
    external_order_id: str
    order_id: Optional[str] = None
    customer_id: str
    vendor_id: Optional[str] = None
    amount: Decimal
    amount_minor: int
    currency: str
    status: PaymentOrderStatus
    receipt: str
    description: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    external_payment_id: Optional[str] = None
    rejected_payment_id: Optional[str] = None
    refund_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None
    webhook_received: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CheckoutDTO(PaymentOrderDTO):
    """Everything the frontend needs to open the gateway checkout."""
    gateway_key_id: Optional[str] = None
    provider: str


class VerificationResultDTO(BaseModel):
    payment: PaymentOrderDTO
    verified: bool
    replayed: bool = False
    message: str


# ---------------------------------------------------------------------------
# Gateway port payloads
# ---------------------------------------------------------------------------
class GatewayOrderRequest(BaseModel):
    amount_minor: int = Field(gt=0)
    currency: str
    receipt: str
    notes: dict[str, str] = Field(default_factory=dict)


class GatewayOrder(BaseModel):
    remote_order_id: str
    provider: str
    status: Optional[str] = None
    amount_minor: Optional[int] = None
    currency: Optional[str] = None
    receipt: Optional[str] = None


class GatewayRefundRequest(BaseModel):
    remote_payment_id: str
    amount_minor: int = Field(gt=0)
    speed: str = "normal"
    notes: dict[str, str] = Field(default_factory=dict)


class GatewayRefund(BaseModel):
    refund_id: str
    provider: str
    status: Optional[str] = None
    amount_minor: Optional[int] = None


class WebhookEvent(BaseModel):
    id: str
    type: str
    provider: str
    data: dict[str, Any]
    # raw fields for traceability (optional)
    raw_headers: Optional[dict[str, Any]] = None
    raw_body: Optional[bytes] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)
