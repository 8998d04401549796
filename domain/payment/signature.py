"""
HMAC-SHA256 proof-of-payment helpers.

The checkout callback signature is hex(HMAC_SHA256(secret, "<order_id>|<payment_id>")).
Webhook bodies are signed the same way over the raw request body.
"""
from __future__ import annotations

import hashlib
import hmac


def sign(message: str | bytes, secret: str) -> str:
    data = message.encode("utf-8") if isinstance(message, str) else message
    return hmac.new(secret.encode("utf-8"), data, hashlib.sha256).hexdigest()


def checkout_payload(external_order_id: str, external_payment_id: str) -> str:
    return f"{external_order_id}|{external_payment_id}"


def compute_checkout_signature(external_order_id: str, external_payment_id: str, secret: str) -> str:
    return sign(checkout_payload(external_order_id, external_payment_id), secret)


def verify_checkout_signature(
    external_order_id: str,
    external_payment_id: str,
    signature: str | None,
    secret: str,
) -> bool:
    """Constant-time comparison of the supplied signature against the expected one."""
    if not signature:
        return False
    expected = compute_checkout_signature(external_order_id, external_payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def verify_body_signature(body: bytes, signature: str | None, secret: str) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign(body, secret).encode("utf-8"), signature.encode("utf-8"))
