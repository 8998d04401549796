"""
订单服务客户端 - 回写订单的支付状态

PATCH {base_url}/update-payment/{order_id}  {"paymentStatus": ..., "transactionId": ...}
"""
from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.ports.order_notifier import OrderPaymentNotifier
from core.logging_config import get_logger


logger = get_logger(__name__)

RETRY_STATUS_CODES = {429, 502, 503, 504}


class OrderServiceError(Exception):
    """订单服务调用失败"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RetryableOrderServiceError(OrderServiceError):
    pass


class HttpOrderPaymentNotifier(OrderPaymentNotifier):
    """通过 HTTP 通知订单服务"""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 1.5,
        max_retries: int = 1,
        retry_delay: float = 0.2,
        deadline: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.deadline = deadline
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def set_payment_status(
        self,
        order_id: str,
        status: str,
        transaction_id: Optional[str] = None,
    ) -> None:
        payload = {"paymentStatus": status}
        if transaction_id:
            payload["transactionId"] = transaction_id

        async def _send_once() -> None:
            resp = await self.client.patch(f"/update-payment/{order_id}", json=payload)
            if resp.status_code in RETRY_STATUS_CODES:
                raise RetryableOrderServiceError(
                    f"Transient order service error {resp.status_code}", resp.status_code
                )
            if resp.status_code >= 400:
                raise OrderServiceError(f"Order service rejected update with {resp.status_code}", resp.status_code)

        async def _send_with_retries() -> None:
            async for attempt in AsyncRetrying(
                reraise=True,
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_exponential(multiplier=self.retry_delay, min=self.retry_delay, max=self.retry_delay * 8),
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableOrderServiceError)),
            ):
                with attempt:
                    await _send_once()

        try:
            await asyncio.wait_for(_send_with_retries(), timeout=self.deadline)
        except asyncio.TimeoutError as exc:
            raise OrderServiceError(f"Order service did not answer within {self.deadline}s") from exc
        except httpx.HTTPError as exc:
            raise OrderServiceError(f"Order service unreachable: {exc}") from exc

        logger.info("order_payment_status_updated", order_id=order_id, status=status, transaction_id=transaction_id)


class LoggingOrderPaymentNotifier(OrderPaymentNotifier):
    """未配置订单服务时使用：只记录日志"""

    async def set_payment_status(
        self,
        order_id: str,
        status: str,
        transaction_id: Optional[str] = None,
    ) -> None:
        logger.info(
            "order_payment_status_skipped",
            order_id=order_id,
            status=status,
            transaction_id=transaction_id,
            reason="ORDERS__BASE_URL not configured",
        )

    async def aclose(self) -> None:
        return None
