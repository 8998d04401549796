"""
Razorpay Orders/Refunds adapter over the REST API (httpx, HTTP basic auth).

- Orders:   POST /orders                        {amount, currency, receipt, notes}
- Refunds:  POST /payments/{payment_id}/refund  {amount, speed, notes}
- Webhooks: `X-Razorpay-Signature` is hex HMAC-SHA256 of the raw body keyed
  with the webhook secret.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Optional

import httpx

from application.dtos.payments import (
    GatewayOrder,
    GatewayOrderRequest,
    GatewayRefund,
    GatewayRefundRequest,
    WebhookEvent,
)
from core.settings import RazorpaySettings, payment_settings
from domain.payment.exceptions import GatewayException, PaymentSignatureException
from domain.payment.signature import verify_body_signature
from infrastructure.external.payments.base import BasePaymentClient


SIGNATURE_HEADER = "X-Razorpay-Signature"
EVENT_ID_HEADER = "X-Razorpay-Event-Id"


class RazorpayClient(BasePaymentClient):
    provider = "razorpay"

    def __init__(
        self,
        config: Optional[RazorpaySettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        cfg = config or payment_settings.razorpay
        if not cfg.key_id or not cfg.key_secret:
            raise RuntimeError("RAZORPAY__KEY_ID / RAZORPAY__KEY_SECRET not configured")
        super().__init__(
            base_url=cfg.base_url,
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
            auth=(cfg.key_id, cfg.key_secret),
            transport=transport,
        )
        self.key_id = cfg.key_id
        self._webhook_secret = cfg.webhook_secret

    async def create_order(self, req: GatewayOrderRequest) -> GatewayOrder:  # type: ignore[override]
        payload = {
            "amount": req.amount_minor,
            "currency": req.currency,
            "receipt": req.receipt,
            "notes": req.notes,
        }
        data = await self._post_json("/orders", payload, operation="create_order")
        remote_id = data.get("id")
        if not remote_id:
            raise GatewayException(
                "Gateway order response carried no id",
                provider=self.provider,
                recoverable=False,
            )
        self._log("gateway_order_created", remote_order_id=remote_id, receipt=req.receipt)
        return GatewayOrder(
            remote_order_id=str(remote_id),
            provider=self.provider,
            status=data.get("status"),
            amount_minor=data.get("amount"),
            currency=data.get("currency"),
            receipt=data.get("receipt"),
        )

    async def refund(self, req: GatewayRefundRequest) -> GatewayRefund:  # type: ignore[override]
        payload = {
            "amount": req.amount_minor,
            "speed": req.speed,
            "notes": req.notes,
        }
        data = await self._post_json(
            f"/payments/{req.remote_payment_id}/refund", payload, operation="refund"
        )
        refund_id = data.get("id")
        if not refund_id:
            raise GatewayException(
                "Gateway refund response carried no id",
                provider=self.provider,
                recoverable=False,
            )
        self._log("gateway_refund_created", refund_id=refund_id, remote_payment_id=req.remote_payment_id)
        return GatewayRefund(
            refund_id=str(refund_id),
            provider=self.provider,
            status=data.get("status"),
            amount_minor=data.get("amount"),
        )

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        if not self._webhook_secret:
            raise PaymentSignatureException("Missing RAZORPAY__WEBHOOK_SECRET", provider=self.provider)
        lowered = {str(k).lower(): v for k, v in headers.items()}
        signature = lowered.get(SIGNATURE_HEADER.lower())
        if not signature:
            raise PaymentSignatureException(f"Missing {SIGNATURE_HEADER} header", provider=self.provider)
        if not verify_body_signature(body, signature, self._webhook_secret):
            raise PaymentSignatureException("Invalid webhook signature", provider=self.provider)
        try:
            event = json.loads(body)
        except ValueError as exc:
            raise PaymentSignatureException("Webhook body is not valid JSON", provider=self.provider) from exc

        event_id = lowered.get(EVENT_ID_HEADER.lower()) or event.get("id") or hashlib.sha256(body).hexdigest()
        return WebhookEvent(
            id=str(event_id),
            type=str(event.get("event", "")),
            provider=self.provider,
            data=event.get("payload", {}) or {},
            raw_headers=headers,
            raw_body=body,
        )

    def _extract_error(self, resp: httpx.Response) -> tuple[Optional[str], Optional[str]]:
        try:
            error = (resp.json() or {}).get("error") or {}
        except ValueError:
            return None, None
        return error.get("code"), error.get("description")
