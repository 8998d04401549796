"""
API依赖项 - 组装应用服务（composition root）
"""
from functools import lru_cache

from application.ports.order_notifier import OrderPaymentNotifier
from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import PaymentApplicationService
from application.services.wallet_service import WalletApplicationService
from core.config import settings
from core.exceptions import ServiceUnavailableException
from core.logging_config import get_logger
from core.settings import payment_settings
from fastapi import Depends
from infrastructure.external.cache import peek_redis_client
from infrastructure.external.orders import get_order_notifier
from infrastructure.external.payments import get_payment_gateway
from infrastructure.locks import get_customer_locks
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)


@lru_cache(maxsize=1)
def _gateway() -> PaymentGateway:
    return get_payment_gateway()


@lru_cache(maxsize=1)
def _notifier() -> OrderPaymentNotifier:
    return get_order_notifier()


async def get_gateway() -> PaymentGateway:
    try:
        return _gateway()
    except RuntimeError as exc:
        logger.error("payment_gateway_unavailable", error=str(exc))
        raise ServiceUnavailableException("Payment gateway is not configured") from exc


async def get_notifier() -> OrderPaymentNotifier:
    return _notifier()


async def _webhook_guard(key: str) -> bool:
    cache = peek_redis_client()
    if cache is None:
        return True
    ttl = max(60, int(payment_settings.webhook.tolerance_seconds))
    return await cache.set_if_absent(key, ttl=ttl)


async def get_payment_service(
    gateway: PaymentGateway = Depends(get_gateway),
    notifier: OrderPaymentNotifier = Depends(get_notifier),
) -> PaymentApplicationService:
    return PaymentApplicationService(
        uow_factory=SQLAlchemyUnitOfWork,
        gateway=gateway,
        notifier=notifier,
        signing_secret=payment_settings.razorpay.key_secret,
        receipt_prefix=payment_settings.receipt_prefix,
        webhook_guard=_webhook_guard,
    )


async def get_wallet_service() -> WalletApplicationService:
    return WalletApplicationService(
        uow_factory=SQLAlchemyUnitOfWork,
        locks=get_customer_locks(),
        default_currency=settings.wallet.default_currency,
        max_cas_retries=settings.wallet.max_cas_retries,
    )


async def close_clients() -> None:
    """关闭已创建的外部客户端"""
    if _gateway.cache_info().currsize:
        await _gateway().aclose()
        _gateway.cache_clear()
    if _notifier.cache_info().currsize:
        await _notifier().aclose()
        _notifier.cache_clear()
