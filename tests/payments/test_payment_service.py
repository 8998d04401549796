import json
from decimal import Decimal

import pytest

from application.dtos.payments import CreatePaymentOrder, MarkPaymentFailed, RefundPayment, VerifyPayment
from application.ports.order_notifier import ORDER_PAYMENT_FAILED, ORDER_PAYMENT_PAID, ORDER_PAYMENT_REFUNDED
from application.services.payment_service import PaymentApplicationService
from domain.common.exceptions import InvalidAmountException
from domain.payment.entity import PaymentOrderStatus
from domain.payment.exceptions import (
    GatewayException,
    InvalidPaymentStateException,
    PaymentNotFoundException,
    RefundFailedException,
)
from domain.payment.signature import compute_checkout_signature
from shared.codes.payment_codes import GATEWAY_REPORTED_FAILURE, SIGNATURE_MISMATCH


SIGNING_SECRET = "test-key-secret"


async def _create(service, **overrides):
    data = dict(amount=Decimal("500.00"), currency="INR", customer_id="cust_1", vendor_id="vend_1", order_id="ord_1")
    data.update(overrides)
    return await service.create_order(CreatePaymentOrder(**data))


async def _verify(service, checkout, payment_id="pay_1", signature=None):
    signature = signature or compute_checkout_signature(checkout.external_order_id, payment_id, SIGNING_SECRET)
    return await service.verify(
        VerifyPayment(
            razorpay_order_id=checkout.external_order_id,
            razorpay_payment_id=payment_id,
            razorpay_signature=signature,
        )
    )


@pytest.mark.asyncio
async def test_create_order_persists_created_payment(payment_service, gateway, store):
    checkout = await _create(payment_service)

    assert checkout.status == PaymentOrderStatus.CREATED
    assert checkout.amount_minor == 50000
    assert checkout.gateway_key_id == "rzp_test_key"
    assert checkout.provider == "stub"
    assert checkout.receipt.startswith("ODOP_")

    sent = gateway.orders[0]
    assert sent.amount_minor == 50000
    assert sent.receipt == checkout.receipt
    assert sent.notes["order_id"] == "ord_1"
    assert store.payments[checkout.id].external_order_id == checkout.external_order_id


@pytest.mark.asyncio
async def test_receipts_are_unique(payment_service):
    first = await _create(payment_service)
    second = await _create(payment_service)
    assert first.receipt != second.receipt


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-10", "0.001", "10.005"])
async def test_create_order_rejects_invalid_amount(payment_service, gateway, store, amount):
    with pytest.raises(InvalidAmountException):
        await _create(payment_service, amount=Decimal(amount))
    assert gateway.orders == []
    assert store.payments == {}


@pytest.mark.asyncio
async def test_gateway_failure_leaves_no_record(payment_service, gateway, store):
    gateway.fail_with = GatewayException("boom", provider="stub")
    with pytest.raises(GatewayException):
        await _create(payment_service)
    assert store.payments == {}


@pytest.mark.asyncio
async def test_verify_success_notifies_order(payment_service, notifier):
    checkout = await _create(payment_service)
    result = await _verify(payment_service, checkout)

    assert result.verified and not result.replayed
    assert result.payment.status == PaymentOrderStatus.SUCCESS
    assert result.payment.external_payment_id == "pay_1"
    assert result.payment.completed_at is not None
    assert notifier.calls == [("ord_1", ORDER_PAYMENT_PAID, "pay_1")]


@pytest.mark.asyncio
async def test_verify_replay_is_idempotent(payment_service, notifier):
    checkout = await _create(payment_service)
    first = await _verify(payment_service, checkout)
    second = await _verify(payment_service, checkout)

    assert second.verified and second.replayed
    assert second.payment.completed_at == first.payment.completed_at
    assert len(notifier.calls) == 1


@pytest.mark.asyncio
async def test_verify_mismatch_marks_failed_without_notifying(payment_service, notifier, store):
    checkout = await _create(payment_service)
    result = await _verify(payment_service, checkout, signature="0" * 64)

    assert not result.verified
    assert result.payment.status == PaymentOrderStatus.FAILED
    assert result.payment.error_code == SIGNATURE_MISMATCH
    assert store.payments[checkout.id].status == PaymentOrderStatus.FAILED
    assert notifier.calls == []


@pytest.mark.asyncio
async def test_verify_after_failure_is_rejected(payment_service):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout, signature="0" * 64)
    with pytest.raises(InvalidPaymentStateException):
        await _verify(payment_service, checkout)


@pytest.mark.asyncio
async def test_forged_verify_cannot_claim_another_orders_payment(payment_service, gateway, store):
    genuine = await _create(payment_service, order_id="ord_a")
    await _verify(payment_service, genuine, payment_id="pay_X")
    forged = await _create(payment_service, order_id="ord_b", customer_id="cust_2")
    rejected = await _verify(payment_service, forged, payment_id="pay_X", signature="0" * 64)

    assert not rejected.verified
    assert rejected.payment.external_payment_id is None
    assert rejected.payment.rejected_payment_id == "pay_X"
    assert store.payments[forged.id].rejected_signature == "0" * 64

    refunded = await payment_service.refund(RefundPayment(external_payment_id="pay_X"))
    assert refunded.id == genuine.id
    assert refunded.status == PaymentOrderStatus.REFUNDED
    assert gateway.refunds[0].remote_payment_id == "pay_X"
    assert store.payments[forged.id].status == PaymentOrderStatus.FAILED


@pytest.mark.asyncio
async def test_verify_unknown_order_never_succeeds(payment_service):
    with pytest.raises(PaymentNotFoundException):
        await payment_service.verify(
            VerifyPayment(external_order_id="order_missing", external_payment_id="pay_1", signature="abc")
        )


@pytest.mark.asyncio
async def test_notifier_failure_does_not_fail_payment(payment_service, notifier, store):
    notifier.fail = True
    checkout = await _create(payment_service)
    result = await _verify(payment_service, checkout)
    assert result.verified
    assert store.payments[checkout.id].status == PaymentOrderStatus.SUCCESS


@pytest.mark.asyncio
async def test_full_refund(payment_service, gateway, notifier):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)

    refunded = await payment_service.refund(RefundPayment(payment_id=checkout.id))

    assert refunded.status == PaymentOrderStatus.REFUNDED
    assert refunded.refund_amount == Decimal("500.00")
    assert refunded.refund_reason == "Customer requested refund"
    assert refunded.refund_id == "rfnd_1"
    assert gateway.refunds[0].remote_payment_id == "pay_1"
    assert gateway.refunds[0].amount_minor == 50000
    assert notifier.calls[-1] == ("ord_1", ORDER_PAYMENT_REFUNDED, None)


@pytest.mark.asyncio
async def test_partial_refund_by_gateway_payment_id(payment_service, gateway):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)

    refunded = await payment_service.refund(
        RefundPayment(external_payment_id="pay_1", refund_amount=Decimal("120.50"), reason="damaged")
    )
    assert refunded.refund_amount == Decimal("120.50")
    assert gateway.refunds[0].amount_minor == 12050


@pytest.mark.asyncio
async def test_refund_exceeding_amount_rejected(payment_service, gateway):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)
    with pytest.raises(InvalidAmountException):
        await payment_service.refund(RefundPayment(payment_id=checkout.id, refund_amount=Decimal("600")))
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_refund_finer_than_paise_rejected(payment_service, gateway, store):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)
    with pytest.raises(InvalidAmountException):
        await payment_service.refund(RefundPayment(payment_id=checkout.id, refund_amount=Decimal("0.004")))
    assert gateway.refunds == []
    assert store.payments[checkout.id].status == PaymentOrderStatus.SUCCESS


@pytest.mark.asyncio
async def test_refund_requires_successful_payment(payment_service, gateway):
    checkout = await _create(payment_service)
    with pytest.raises(InvalidPaymentStateException):
        await payment_service.refund(RefundPayment(payment_id=checkout.id))
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_second_refund_rejected(payment_service):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)
    await payment_service.refund(RefundPayment(payment_id=checkout.id, refund_amount=Decimal("100")))
    with pytest.raises(InvalidPaymentStateException):
        await payment_service.refund(RefundPayment(payment_id=checkout.id, refund_amount=Decimal("100")))


@pytest.mark.asyncio
async def test_refund_gateway_failure_keeps_payment_successful(payment_service, gateway, store):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)
    gateway.fail_with = GatewayException("refund rejected", provider="stub", recoverable=False)

    with pytest.raises(RefundFailedException):
        await payment_service.refund(RefundPayment(payment_id=checkout.id))

    stored = store.payments[checkout.id]
    assert stored.status == PaymentOrderStatus.SUCCESS
    assert stored.refund_id is None


@pytest.mark.asyncio
async def test_refund_unknown_payment(payment_service):
    with pytest.raises(PaymentNotFoundException):
        await payment_service.refund(RefundPayment(payment_id=999))


@pytest.mark.asyncio
async def test_mark_failed(payment_service, notifier):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)

    failed = await payment_service.mark_failed(
        MarkPaymentFailed(external_payment_id="pay_1", error_code="BAD_REQUEST_ERROR", error_description="declined")
    )
    assert failed.status == PaymentOrderStatus.FAILED
    assert failed.error_code == "BAD_REQUEST_ERROR"
    assert notifier.calls[-1] == ("ord_1", ORDER_PAYMENT_FAILED, None)

    with pytest.raises(InvalidPaymentStateException):
        await payment_service.mark_failed(MarkPaymentFailed(external_payment_id="pay_1"))


@pytest.mark.asyncio
async def test_mark_failed_unknown_payment(payment_service):
    with pytest.raises(PaymentNotFoundException):
        await payment_service.mark_failed(MarkPaymentFailed(external_payment_id="pay_missing"))


@pytest.mark.asyncio
async def test_queries(payment_service):
    first = await _create(payment_service)
    second = await _create(payment_service, order_id="ord_2")
    await _create(payment_service, customer_id="cust_2", vendor_id="vend_2", order_id="ord_3")

    assert (await payment_service.get_status(first.id)).receipt == first.receipt
    assert (await payment_service.get_by_external_order_id(second.external_order_id)).id == second.id
    assert (await payment_service.get_by_order_id("ord_2")).id == second.id

    mine = await payment_service.list_by_customer("cust_1")
    assert [p.id for p in mine] == [second.id, first.id]
    assert len(await payment_service.list_by_vendor("vend_1", skip=1, limit=5)) == 1

    with pytest.raises(PaymentNotFoundException):
        await payment_service.get_status(12345)


def _webhook(event_id: str, event: str, entity: dict) -> bytes:
    return json.dumps({"id": event_id, "event": event, "payload": {"payment": {"entity": entity}}}).encode()


@pytest.mark.asyncio
async def test_webhook_failed_event_marks_payment_failed(payment_service, notifier, store):
    checkout = await _create(payment_service)
    body = _webhook("evt_1", "payment.failed", {"id": "pay_9", "order_id": checkout.external_order_id})

    outcome = await payment_service.handle_webhook({}, body)

    assert outcome == {"event_id": "evt_1", "type": "payment.failed", "status": "processed"}
    stored = store.payments[checkout.id]
    assert stored.status == PaymentOrderStatus.FAILED
    assert stored.error_code == GATEWAY_REPORTED_FAILURE
    assert stored.external_payment_id == "pay_9"
    assert stored.webhook_received
    assert notifier.calls == [("ord_1", ORDER_PAYMENT_FAILED, None)]


@pytest.mark.asyncio
async def test_webhook_captured_event_is_recorded(payment_service, store):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout)
    body = _webhook("evt_2", "payment.captured", {"id": "pay_1", "order_id": checkout.external_order_id})

    outcome = await payment_service.handle_webhook({}, body)

    assert outcome["status"] == "recorded"
    assert store.payments[checkout.id].webhook_received
    assert store.payments[checkout.id].status == PaymentOrderStatus.SUCCESS


@pytest.mark.asyncio
async def test_webhook_for_unknown_or_settled_payment_is_acknowledged(payment_service):
    body = _webhook("evt_3", "payment.failed", {"id": "pay_x", "order_id": "order_unknown"})
    assert (await payment_service.handle_webhook({}, body))["status"] == "ignored"

    body = _webhook("evt_4", "refund.created", {})
    assert (await payment_service.handle_webhook({}, body))["status"] == "ignored"


@pytest.mark.asyncio
async def test_webhook_duplicate_delivery_skipped(uow_factory, gateway, notifier):
    seen = set()

    async def guard(key: str) -> bool:
        if key in seen:
            return False
        seen.add(key)
        return True

    service = PaymentApplicationService(
        uow_factory=uow_factory,
        gateway=gateway,
        notifier=notifier,
        signing_secret=SIGNING_SECRET,
        webhook_guard=guard,
    )
    checkout = await _create(service)
    body = _webhook("evt_5", "payment.failed", {"id": "pay_5", "order_id": checkout.external_order_id})

    assert (await service.handle_webhook({}, body))["status"] == "processed"
    assert (await service.handle_webhook({}, body))["status"] == "duplicate"
    assert len(notifier.calls) == 1


@pytest.mark.asyncio
async def test_aclose_closes_gateway(payment_service, gateway):
    await payment_service.aclose()
    assert gateway.closed


@pytest.mark.asyncio
async def test_happy_path_create_verify_refund(payment_service):
    checkout = await _create(payment_service, amount=Decimal("499.00"), order_id=None, vendor_id=None)
    assert checkout.status == PaymentOrderStatus.CREATED

    verified = await _verify(payment_service, checkout, payment_id="pay_happy")
    assert verified.payment.status == PaymentOrderStatus.SUCCESS
    assert verified.payment.completed_at is not None

    refunded = await payment_service.refund(RefundPayment(payment_id=checkout.id, reason="changed mind"))
    assert refunded.status == PaymentOrderStatus.REFUNDED
    assert refunded.refund_amount == Decimal("499.00")
    assert refunded.refund_reason == "changed mind"


@pytest.mark.asyncio
async def test_refund_from_failed_leaves_record_unchanged(payment_service, store):
    checkout = await _create(payment_service)
    await _verify(payment_service, checkout, signature="f" * 64)
    before = store.payments[checkout.id]

    with pytest.raises(InvalidPaymentStateException):
        await payment_service.refund(RefundPayment(payment_id=checkout.id))
    assert store.payments[checkout.id] == before
