"""
Payment domain events.

Dataclass events record payment lifecycle facts for downstream handling
(order collaborator notification). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class PaymentEvent:
    payment_id: Optional[int]
    order_id: Optional[str]
    external_order_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PaymentSucceeded(PaymentEvent):
    external_payment_id: str = ""


@dataclass
class PaymentFailed(PaymentEvent):
    error_code: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class PaymentSignatureRejected(PaymentEvent):
    """Signature mismatch. Recorded for audit only; the order is never told."""
    external_payment_id: str = ""


@dataclass
class PaymentRefunded(PaymentEvent):
    refund_id: str = ""
    amount: str = ""
