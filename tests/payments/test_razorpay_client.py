import base64
import json

import httpx
import pytest

from application.dtos.payments import GatewayOrderRequest, GatewayRefundRequest
from core.settings import RazorpaySettings
from domain.payment.exceptions import GatewayException, PaymentSignatureException
from domain.payment.signature import sign
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.razorpay_client import RazorpayClient


CONFIG = RazorpaySettings(
    key_id="rzp_test_key",
    key_secret="key-secret",
    webhook_secret="whsec",
    base_url="https://api.razorpay.test/v1",
)


def _client(handler) -> RazorpayClient:
    return RazorpayClient(CONFIG, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_create_order_posts_minor_units_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"id": "order_Abc123", "status": "created", "amount": 50000, "currency": "INR", "receipt": "r1"},
        )

    client = _client(handler)
    order = await client.create_order(GatewayOrderRequest(amount_minor=50000, currency="INR", receipt="r1"))
    await client.aclose()

    assert order.remote_order_id == "order_Abc123"
    assert order.provider == "razorpay"
    assert seen["path"] == "/v1/orders"
    assert seen["body"] == {"amount": 50000, "currency": "INR", "receipt": "r1", "notes": {}}
    expected = base64.b64encode(b"rzp_test_key:key-secret").decode()
    assert seen["auth"] == f"Basic {expected}"


@pytest.mark.asyncio
async def test_refund_posts_to_payment():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/payments/pay_1/refund"
        body = json.loads(request.content)
        assert body["amount"] == 12050
        assert body["speed"] == "optimum"
        return httpx.Response(200, json={"id": "rfnd_1", "status": "processed", "amount": 12050})

    client = _client(handler)
    refund = await client.refund(GatewayRefundRequest(remote_payment_id="pay_1", amount_minor=12050, speed="optimum"))
    assert refund.refund_id == "rfnd_1"
    assert refund.amount_minor == 12050


@pytest.mark.asyncio
async def test_client_error_is_not_recoverable():
    def handler(request):
        return httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR", "description": "amount too low"}})

    with pytest.raises(GatewayException) as excinfo:
        await _client(handler).create_order(GatewayOrderRequest(amount_minor=1, currency="INR", receipt="r"))
    assert excinfo.value.recoverable is False
    assert excinfo.value.provider_code == "BAD_REQUEST_ERROR"
    assert excinfo.value.message == "amount too low"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 503])
async def test_server_errors_are_recoverable(status):
    def handler(request):
        return httpx.Response(status, text="upstream unavailable")

    with pytest.raises(GatewayException) as excinfo:
        await _client(handler).create_order(GatewayOrderRequest(amount_minor=100, currency="INR", receipt="r"))
    assert excinfo.value.recoverable is True
    assert excinfo.value.details["status_code"] == status


@pytest.mark.asyncio
async def test_timeout_maps_to_gateway_exception():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(GatewayException) as excinfo:
        await _client(handler).refund(GatewayRefundRequest(remote_payment_id="pay_1", amount_minor=100))
    assert excinfo.value.provider_code == "TIMEOUT"


@pytest.mark.asyncio
async def test_response_without_id_is_rejected():
    def handler(request):
        return httpx.Response(200, json={"status": "created"})

    with pytest.raises(GatewayException):
        await _client(handler).create_order(GatewayOrderRequest(amount_minor=100, currency="INR", receipt="r"))


def test_missing_credentials():
    with pytest.raises(RuntimeError):
        RazorpayClient(RazorpaySettings(key_id=None, key_secret=None))


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_payment_gateway("paypal")


def _webhook_body() -> bytes:
    return json.dumps({
        "id": "evt_body",
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_1", "order_id": "order_1"}}},
    }).encode()


def test_parse_webhook_verifies_signature():
    body = _webhook_body()
    client = _client(lambda r: httpx.Response(200))
    event = client.parse_webhook(
        {"x-razorpay-signature": sign(body, "whsec"), "X-Razorpay-Event-Id": "evt_header"},
        body,
    )
    assert event.id == "evt_header"
    assert event.type == "payment.captured"
    assert event.data["payment"]["entity"]["id"] == "pay_1"


def test_parse_webhook_falls_back_to_body_id():
    body = _webhook_body()
    event = _client(lambda r: httpx.Response(200)).parse_webhook({"X-Razorpay-Signature": sign(body, "whsec")}, body)
    assert event.id == "evt_body"


@pytest.mark.parametrize("headers", [{}, {"X-Razorpay-Signature": "bad"}])
def test_parse_webhook_rejects_unsigned_body(headers):
    with pytest.raises(PaymentSignatureException):
        _client(lambda r: httpx.Response(200)).parse_webhook(headers, _webhook_body())
