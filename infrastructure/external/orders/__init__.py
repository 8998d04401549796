"""
订单服务集成
"""
from __future__ import annotations

from core.config import settings
from .client import HttpOrderPaymentNotifier, LoggingOrderPaymentNotifier, OrderServiceError


def get_order_notifier():
    if settings.orders.base_url:
        return HttpOrderPaymentNotifier(
            settings.orders.base_url,
            timeout=settings.orders.timeout,
            max_retries=settings.orders.max_retries,
            deadline=settings.orders.deadline,
        )
    return LoggingOrderPaymentNotifier()


__all__ = [
    "HttpOrderPaymentNotifier",
    "LoggingOrderPaymentNotifier",
    "OrderServiceError",
    "get_order_notifier",
]
