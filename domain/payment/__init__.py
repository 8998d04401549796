from .entity import PaymentOrder, PaymentOrderStatus
from .repository import PaymentOrderRepository

__all__ = ["PaymentOrder", "PaymentOrderStatus", "PaymentOrderRepository"]
