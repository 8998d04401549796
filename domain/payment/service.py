"""
支付领域服务 - 处理 PaymentOrder 生命周期中的业务规则
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from .entity import PaymentOrder, PaymentOrderStatus
from .events import (
    PaymentFailed,
    PaymentRefunded,
    PaymentSignatureRejected,
    PaymentSucceeded,
)
from .exceptions import InvalidPaymentStateException, PaymentNotFoundException
from .repository import PaymentOrderRepository
from .signature import verify_checkout_signature


@dataclass
class VerificationOutcome:
    payment: PaymentOrder
    verified: bool
    replayed: bool = False


class PaymentDomainService:
    """
    支付领域服务 - 编排 PaymentOrder 的状态转换

    职责：
    1. 创建 created 状态的支付记录
    2. 基于 HMAC 签名的支付校验（幂等重放保护）
    3. 退款与失败标记的状态规则
    4. 产生领域事件，由应用层在事务提交后分发
    """

    def __init__(self, payment_repository: PaymentOrderRepository, signing_secret: str):
        self.payment_repository = payment_repository
        self._signing_secret = signing_secret
        self.events: List = []

    async def create_payment_order(
        self,
        *,
        external_order_id: str,
        receipt: str,
        customer_id: str,
        amount: Decimal,
        currency: str,
        vendor_id: Optional[str] = None,
        order_id: Optional[str] = None,
        description: Optional[str] = None,
        notes: Optional[str] = None,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> PaymentOrder:
        now = datetime.now(timezone.utc)
        payment = PaymentOrder(
            id=None,
            external_order_id=external_order_id,
            customer_id=customer_id,
            amount=amount,
            currency=currency,
            status=PaymentOrderStatus.CREATED,
            receipt=receipt,
            order_id=order_id,
            vendor_id=vendor_id,
            description=description,
            notes=notes,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            created_at=now,
            updated_at=now,
        )
        return await self.payment_repository.create(payment)

    async def verify_payment(
        self,
        external_order_id: str,
        external_payment_id: str,
        signature: str,
    ) -> VerificationOutcome:
        """
        校验支付签名

        业务规则：
        1. 支付记录必须存在，否则绝不静默成功
        2. 已 success 且凭证相同的重放直接返回，不重复产生事件
        3. 签名不匹配时标记 failed（SIGNATURE_MISMATCH），不通知订单
        """
        payment = await self.payment_repository.get_by_external_order_id(external_order_id, for_update=True)
        if payment is None:
            raise PaymentNotFoundException(f"external_order_id={external_order_id}")

        if payment.is_verified_replay(external_payment_id, signature):
            return VerificationOutcome(payment=payment, verified=True, replayed=True)

        if payment.status != PaymentOrderStatus.CREATED:
            raise InvalidPaymentStateException(payment.status.value, "verify", payment.id)

        if verify_checkout_signature(external_order_id, external_payment_id, signature, self._signing_secret):
            payment.mark_success(external_payment_id, signature)
            updated = await self.payment_repository.update(payment)
            self.events.append(PaymentSucceeded(
                payment_id=updated.id,
                order_id=updated.order_id,
                external_order_id=updated.external_order_id,
                external_payment_id=external_payment_id,
            ))
            return VerificationOutcome(payment=updated, verified=True)

        payment.mark_signature_mismatch(external_payment_id, signature)
        updated = await self.payment_repository.update(payment)
        self.events.append(PaymentSignatureRejected(
            payment_id=updated.id,
            order_id=updated.order_id,
            external_order_id=updated.external_order_id,
            external_payment_id=external_payment_id,
        ))
        return VerificationOutcome(payment=updated, verified=False)

    async def load_refundable(
        self,
        *,
        payment_id: Optional[int] = None,
        external_payment_id: Optional[str] = None,
    ) -> PaymentOrder:
        payment = await self._find(payment_id=payment_id, external_payment_id=external_payment_id, for_update=True)
        if payment.status != PaymentOrderStatus.SUCCESS:
            raise InvalidPaymentStateException(payment.status.value, "refund", payment.id)
        return payment

    async def apply_refund(
        self,
        payment: PaymentOrder,
        *,
        refund_id: str,
        amount: Decimal,
        reason: Optional[str],
    ) -> PaymentOrder:
        payment.apply_refund(refund_id, amount, reason)
        updated = await self.payment_repository.update(payment)
        self.events.append(PaymentRefunded(
            payment_id=updated.id,
            order_id=updated.order_id,
            external_order_id=updated.external_order_id,
            refund_id=refund_id,
            amount=str(amount),
        ))
        return updated

    async def mark_payment_failed(
        self,
        *,
        external_payment_id: Optional[str],
        external_order_id: Optional[str] = None,
        error_code: Optional[str] = None,
        error_description: Optional[str] = None,
        from_webhook: bool = False,
    ) -> PaymentOrder:
        payment = None
        if external_payment_id:
            payment = await self.payment_repository.get_by_external_payment_id(external_payment_id, for_update=True)
        if payment is None and external_order_id:
            payment = await self.payment_repository.get_by_external_order_id(external_order_id, for_update=True)
        if payment is None:
            raise PaymentNotFoundException(
                f"external_payment_id={external_payment_id}" if external_payment_id
                else f"external_order_id={external_order_id}"
            )

        # 只有经过签名校验的 webhook 才能补写支付ID
        if from_webhook and external_payment_id and not payment.external_payment_id:
            payment.external_payment_id = external_payment_id
        payment.mark_failed(error_code, error_description)
        if from_webhook:
            payment.record_webhook()
        updated = await self.payment_repository.update(payment)
        self.events.append(PaymentFailed(
            payment_id=updated.id,
            order_id=updated.order_id,
            external_order_id=updated.external_order_id,
            error_code=error_code,
            reason=error_description,
        ))
        return updated

    async def record_webhook(self, external_order_id: str) -> Optional[PaymentOrder]:
        payment = await self.payment_repository.get_by_external_order_id(external_order_id, for_update=True)
        if payment is None:
            return None
        payment.record_webhook()
        return await self.payment_repository.update(payment)

    async def _find(
        self,
        *,
        payment_id: Optional[int] = None,
        external_payment_id: Optional[str] = None,
        for_update: bool = False,
    ) -> PaymentOrder:
        payment = None
        if payment_id is not None:
            payment = await self.payment_repository.get_by_id(payment_id, for_update=for_update)
            identifier = f"id={payment_id}"
        elif external_payment_id:
            payment = await self.payment_repository.get_by_external_payment_id(
                external_payment_id, for_update=for_update
            )
            identifier = f"external_payment_id={external_payment_id}"
        else:
            identifier = "<none>"
        if payment is None:
            raise PaymentNotFoundException(identifier)
        return payment

    def clear_events(self) -> List:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
