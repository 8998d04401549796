"""
支付应用服务（application/services）- 编排网关调用、持久化与订单通知

This class depends only on the application ports and DTOs. The gateway,
order notifier and webhook guard are provided by infrastructure and injected
from the composition root (API), keeping dependencies one-way.
"""
from __future__ import annotations

import hashlib
import time
import uuid
from typing import Any, Awaitable, Callable, List, Optional

from application.dtos.payments import (
    CheckoutDTO,
    CreatePaymentOrder,
    GatewayOrderRequest,
    GatewayRefundRequest,
    MarkPaymentFailed,
    PaymentOrderDTO,
    RefundPayment,
    VerificationResultDTO,
    VerifyPayment,
)
from application.ports.order_notifier import (
    ORDER_PAYMENT_FAILED,
    ORDER_PAYMENT_PAID,
    ORDER_PAYMENT_REFUNDED,
    OrderPaymentNotifier,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.money import to_minor_units, validate_amount
from domain.payment.entity import PaymentOrder
from domain.payment.events import PaymentFailed, PaymentRefunded, PaymentSucceeded
from domain.payment.exceptions import (
    GatewayException,
    InvalidPaymentStateException,
    PaymentNotFoundException,
    RefundFailedException,
)
from domain.payment.service import PaymentDomainService
from shared.codes.payment_codes import GATEWAY_REPORTED_FAILURE


logger = get_logger(__name__)

DEFAULT_REFUND_REASON = "Customer requested refund"

# 返回 True 表示首次见到该 key
WebhookGuard = Callable[[str], Awaitable[bool]]


def generate_receipt(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class PaymentApplicationService:
    """支付应用服务 - 处理 createOrder / verify / refund / markFailed 及查询"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        notifier: OrderPaymentNotifier,
        *,
        signing_secret: str,
        receipt_prefix: str = "ODOP",
        webhook_guard: Optional[WebhookGuard] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self.gateway = gateway
        self.notifier = notifier
        self._signing_secret = signing_secret
        self._receipt_prefix = receipt_prefix
        self._webhook_guard = webhook_guard

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def create_order(self, data: CreatePaymentOrder) -> CheckoutDTO:
        """
        创建支付订单

        流程：
        1. 校验金额并换算为最小货币单位
        2. 在网关创建订单（失败则不落库）
        3. 持久化 created 状态的支付记录
        """
        amount = validate_amount(data.amount, data.currency)
        amount_minor = to_minor_units(amount, data.currency)

        receipt = generate_receipt(self._receipt_prefix)
        notes = {
            k: v
            for k, v in {
                "order_id": data.order_id,
                "customer_id": data.customer_id,
                "vendor_id": data.vendor_id,
                "description": data.description,
            }.items()
            if v
        }
        logger.info(
            "payment_order_create_request",
            order_id=data.order_id,
            customer_id=data.customer_id,
            amount=str(data.amount),
            currency=data.currency,
            receipt=receipt,
        )
        remote = await self.gateway.create_order(
            GatewayOrderRequest(amount_minor=amount_minor, currency=data.currency, receipt=receipt, notes=notes)
        )

        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_order_repository, self._signing_secret)
            payment = await domain_service.create_payment_order(
                external_order_id=remote.remote_order_id,
                receipt=receipt,
                customer_id=data.customer_id,
                amount=data.amount,
                currency=data.currency,
                vendor_id=data.vendor_id,
                order_id=data.order_id,
                description=data.description,
                notes=data.notes,
                customer_name=data.customer_name,
                customer_email=data.customer_email,
                customer_phone=data.customer_phone,
            )

        logger.info(
            "payment_order_created",
            payment_id=payment.id,
            external_order_id=payment.external_order_id,
            order_id=payment.order_id,
            provider=self.gateway.provider,
        )
        return CheckoutDTO(
            **self._to_dto(payment).model_dump(),
            gateway_key_id=self.gateway.key_id,
            provider=self.gateway.provider,
        )

    async def verify(self, data: VerifyPayment) -> VerificationResultDTO:
        """校验支付签名；重复提交相同凭证时直接返回已完成的结果"""
        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_order_repository, self._signing_secret)
            outcome = await domain_service.verify_payment(
                data.external_order_id,
                data.external_payment_id,
                data.signature,
            )
            events = domain_service.clear_events()

        payment = outcome.payment
        if outcome.replayed:
            logger.info("payment_verify_replayed", payment_id=payment.id, external_order_id=payment.external_order_id)
            message = "Payment already verified"
        elif outcome.verified:
            logger.info(
                "payment_verified",
                payment_id=payment.id,
                external_order_id=payment.external_order_id,
                external_payment_id=payment.external_payment_id,
            )
            message = "Payment verified successfully"
        else:
            logger.warning(
                "payment_signature_mismatch",
                payment_id=payment.id,
                external_order_id=payment.external_order_id,
                external_payment_id=data.external_payment_id,
            )
            message = "Payment signature verification failed"

        await self._dispatch(events)
        return VerificationResultDTO(
            payment=self._to_dto(payment),
            verified=outcome.verified,
            replayed=outcome.replayed,
            message=message,
        )

    async def refund(self, data: RefundPayment) -> PaymentOrderDTO:
        """
        退款

        支付行在整个网关调用期间保持锁定，避免同一笔支付被并发退款。
        网关失败时事务回滚，本地状态不变。
        """
        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_order_repository, self._signing_secret)
            payment = await domain_service.load_refundable(
                payment_id=data.payment_id,
                external_payment_id=data.external_payment_id,
            )
            amount = payment.resolve_refund_amount(data.refund_amount)
            reason = data.reason or DEFAULT_REFUND_REASON

            try:
                remote = await self.gateway.refund(
                    GatewayRefundRequest(
                        remote_payment_id=payment.external_payment_id,
                        amount_minor=to_minor_units(amount, payment.currency),
                        speed=data.speed,
                        notes={"reason": reason},
                    )
                )
            except GatewayException as exc:
                logger.error(
                    "payment_refund_failed",
                    payment_id=payment.id,
                    external_payment_id=payment.external_payment_id,
                    error=exc.message,
                )
                raise RefundFailedException(payment.id, exc.message, details=exc.details) from exc

            updated = await domain_service.apply_refund(payment, refund_id=remote.refund_id, amount=amount, reason=reason)
            events = domain_service.clear_events()

        logger.info(
            "payment_refunded",
            payment_id=updated.id,
            refund_id=updated.refund_id,
            amount=str(amount),
            full=amount == updated.amount,
        )
        await self._dispatch(events)
        return self._to_dto(updated)

    async def mark_failed(self, data: MarkPaymentFailed) -> PaymentOrderDTO:
        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_order_repository, self._signing_secret)
            updated = await domain_service.mark_payment_failed(
                external_payment_id=data.external_payment_id,
                external_order_id=data.external_order_id,
                error_code=data.error_code,
                error_description=data.error_description,
            )
            events = domain_service.clear_events()

        logger.info(
            "payment_marked_failed",
            payment_id=updated.id,
            external_payment_id=data.external_payment_id,
            error_code=data.error_code,
        )
        await self._dispatch(events)
        return self._to_dto(updated)

    async def handle_webhook(self, headers: dict, body: bytes) -> dict[str, Any]:
        """
        处理网关 Webhook

        签名不通过时由网关适配器抛出 PaymentSignatureException。
        已处理过或与当前状态不符的事件只记录日志并确认接收，避免网关重复投递。
        """
        event = self.gateway.parse_webhook(headers, body)
        logger.info("payment_webhook_parsed", provider=self.gateway.provider, event_type=event.type, event_id=event.id)

        if self._webhook_guard is not None:
            digest = hashlib.sha256(body).hexdigest()[:16]
            first_seen = await self._webhook_guard(f"webhook:{event.provider}:{event.id}:{digest}")
            if not first_seen:
                logger.info("payment_webhook_duplicate", event_id=event.id, event_type=event.type)
                return {"event_id": event.id, "type": event.type, "status": "duplicate"}

        entity = (event.data.get("payment") or {}).get("entity") or {}
        external_payment_id = entity.get("id")
        external_order_id = entity.get("order_id")

        try:
            if event.type == "payment.failed":
                await self._fail_from_webhook(entity, external_payment_id, external_order_id)
                outcome = "processed"
            elif event.type in {"payment.captured", "payment.authorized"} and external_order_id:
                async with self._uow_factory() as uow:
                    domain_service = PaymentDomainService(uow.payment_order_repository, self._signing_secret)
                    recorded = await domain_service.record_webhook(external_order_id)
                outcome = "recorded" if recorded else "ignored"
            else:
                outcome = "ignored"
        except (PaymentNotFoundException, InvalidPaymentStateException) as exc:
            logger.warning("payment_webhook_not_applied", event_id=event.id, event_type=event.type, reason=exc.message)
            outcome = "ignored"

        logger.info("payment_webhook_handled", event_id=event.id, event_type=event.type, outcome=outcome)
        return {"event_id": event.id, "type": event.type, "status": outcome}

    async def _fail_from_webhook(
        self,
        entity: dict[str, Any],
        external_payment_id: Optional[str],
        external_order_id: Optional[str],
    ) -> None:
        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_order_repository, self._signing_secret)
            await domain_service.mark_payment_failed(
                external_payment_id=external_payment_id,
                external_order_id=external_order_id,
                error_code=entity.get("error_code") or GATEWAY_REPORTED_FAILURE,
                error_description=entity.get("error_description"),
                from_webhook=True,
            )
            events = domain_service.clear_events()
        await self._dispatch(events)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get_status(self, payment_id: int) -> PaymentOrderDTO:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_order_repository.get_by_id(payment_id)
            if payment is None:
                raise PaymentNotFoundException(f"id={payment_id}")
            return self._to_dto(payment)

    async def get_by_external_order_id(self, external_order_id: str) -> PaymentOrderDTO:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_order_repository.get_by_external_order_id(external_order_id)
            if payment is None:
                raise PaymentNotFoundException(f"external_order_id={external_order_id}")
            return self._to_dto(payment)

    async def get_by_order_id(self, order_id: str) -> PaymentOrderDTO:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_order_repository.get_by_order_id(order_id)
            if payment is None:
                raise PaymentNotFoundException(f"order_id={order_id}")
            return self._to_dto(payment)

    async def list_by_customer(self, customer_id: str, skip: int = 0, limit: int = 100) -> List[PaymentOrderDTO]:
        async with self._uow_factory(readonly=True) as uow:
            payments = await uow.payment_order_repository.list_by_customer(customer_id, skip, limit)
            return [self._to_dto(p) for p in payments]

    async def list_by_vendor(self, vendor_id: str, skip: int = 0, limit: int = 100) -> List[PaymentOrderDTO]:
        async with self._uow_factory(readonly=True) as uow:
            payments = await uow.payment_order_repository.list_by_vendor(vendor_id, skip, limit)
            return [self._to_dto(p) for p in payments]

    async def aclose(self) -> None:
        await self.gateway.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _dispatch(self, events: list) -> None:
        """事务提交后通知订单服务；通知失败只记日志，不影响支付结果"""
        for event in events:
            if not event.order_id:
                continue
            if isinstance(event, PaymentSucceeded):
                status, transaction_id = ORDER_PAYMENT_PAID, event.external_payment_id
            elif isinstance(event, (PaymentRefunded, PaymentFailed)):
                # 保留订单上已记录的支付ID
                status = ORDER_PAYMENT_REFUNDED if isinstance(event, PaymentRefunded) else ORDER_PAYMENT_FAILED
                transaction_id = None
            else:
                # signature rejections are audit-only
                continue
            try:
                await self.notifier.set_payment_status(event.order_id, status, transaction_id)
            except Exception as exc:
                logger.warning(
                    "order_payment_status_notify_failed",
                    order_id=event.order_id,
                    status=status,
                    payment_id=event.payment_id,
                    error=str(exc),
                    exc_info=True,
                )

    @staticmethod
    def _to_dto(payment: PaymentOrder) -> PaymentOrderDTO:
        return PaymentOrderDTO.model_validate(payment)
