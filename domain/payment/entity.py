"""
支付领域实体 - PaymentOrder 聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException, InvalidAmountException
from domain.common.money import to_minor_units, validate_amount
from domain.payment.exceptions import InvalidPaymentStateException
from shared.codes.payment_codes import SIGNATURE_MISMATCH


class PaymentOrderStatus(str, Enum):
    """支付状态: created -> success | failed, success -> refunded | failed"""
    CREATED = "created"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PaymentOrder:
    """
    支付聚合根 - 一次通过外部网关收款的尝试

    业务规则：
    1. 金额必须大于0，且小数位不超过币种精度
    2. 只有通过签名校验才能进入 success
    3. 只有 success 才能退款，且只支持一次退款
    4. failed / refunded 为终态
    5. 记录永不删除
    """

    id: Optional[int]
    external_order_id: str
    customer_id: str
    amount: Decimal
    currency: str
    status: PaymentOrderStatus
    receipt: str

    order_id: Optional[str] = None
    vendor_id: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    # 客户快照（用于收据）
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None

    # 支付凭证（仅验签通过后写入）
    external_payment_id: Optional[str] = None
    signature: Optional[str] = None

    # 验签失败时提交的凭证，仅供审计，不参与按支付ID查询
    rejected_payment_id: Optional[str] = None
    rejected_signature: Optional[str] = None

    # 退款
    refund_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None

    # 失败
    error_code: Optional[str] = None
    error_description: Optional[str] = None

    webhook_received: bool = False
    webhook_received_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(f"Invalid currency code: {self.currency}", field="currency")
        self.currency = self.currency.upper()
        self.amount = validate_amount(self.amount, self.currency)
        self.created_at = _ensure_utc(self.created_at)
        self.completed_at = _ensure_utc(self.completed_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.refunded_at = _ensure_utc(self.refunded_at)
        self.webhook_received_at = _ensure_utc(self.webhook_received_at)

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.amount, self.currency)

    def _require(self, action: str, *allowed: PaymentOrderStatus) -> None:
        if self.status not in allowed:
            raise InvalidPaymentStateException(self.status.value, action, self.id)

    def is_verified_replay(self, external_payment_id: str, signature: str) -> bool:
        """Same proof presented again for an order it already settled."""
        return (
            self.status == PaymentOrderStatus.SUCCESS
            and self.external_payment_id == external_payment_id
            and self.signature == signature
        )

    def mark_success(self, external_payment_id: str, signature: str) -> None:
        self._require("verify", PaymentOrderStatus.CREATED)
        now = _utcnow()
        self.external_payment_id = external_payment_id
        self.signature = signature
        self.status = PaymentOrderStatus.SUCCESS
        self.completed_at = now
        self.updated_at = now
        self.error_code = None
        self.error_description = None

    def mark_signature_mismatch(self, external_payment_id: str, signature: str) -> None:
        """Fail closed. The presented proof is kept for audit only."""
        self._require("verify", PaymentOrderStatus.CREATED)
        self.rejected_payment_id = external_payment_id
        self.rejected_signature = signature
        self.status = PaymentOrderStatus.FAILED
        self.error_code = SIGNATURE_MISMATCH
        self.error_description = "Payment signature verification failed"
        self.updated_at = _utcnow()

    def mark_failed(self, error_code: Optional[str], error_description: Optional[str]) -> None:
        self._require("mark failed", PaymentOrderStatus.CREATED, PaymentOrderStatus.SUCCESS)
        self.status = PaymentOrderStatus.FAILED
        self.error_code = error_code
        self.error_description = error_description
        self.updated_at = _utcnow()

    def resolve_refund_amount(self, requested: Optional[Decimal]) -> Decimal:
        """Zero or missing means a full refund; partial refunds may not exceed the amount."""
        self._require("refund", PaymentOrderStatus.SUCCESS)
        if requested is None or requested == 0:
            return self.amount
        requested = validate_amount(requested, self.currency, field="refund_amount")
        if requested > self.amount:
            raise InvalidAmountException(
                requested,
                field="refund_amount",
                reason=f"Refund amount {requested} exceeds payment amount {self.amount}",
            )
        return requested

    def apply_refund(self, refund_id: str, amount: Decimal, reason: Optional[str]) -> None:
        self._require("refund", PaymentOrderStatus.SUCCESS)
        now = _utcnow()
        self.status = PaymentOrderStatus.REFUNDED
        self.refund_id = refund_id
        self.refund_amount = amount
        self.refund_reason = reason
        self.refunded_at = now
        self.updated_at = now

    def record_webhook(self) -> None:
        self.webhook_received = True
        self.webhook_received_at = _utcnow()
        self.updated_at = self.webhook_received_at
