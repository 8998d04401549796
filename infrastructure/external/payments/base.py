"""
Base payment client implementing shared concerns: http, retry, logging, error mapping.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional
from contextlib import asynccontextmanager

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from application.dtos.payments import (
    GatewayOrder,
    GatewayOrderRequest,
    GatewayRefund,
    GatewayRefundRequest,
    WebhookEvent,
)
from application.ports.payment_gateway import PaymentGateway
from domain.payment.exceptions import GatewayException


logger = get_logger(__name__)


class BasePaymentClient(PaymentGateway):
    provider: str = "base"
    key_id: Optional[str] = None

    def __init__(
        self,
        *,
        base_url: str,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        auth: Optional[httpx.Auth | tuple[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 0, "base": 0.2}
        self._auth = auth
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self.timeouts,
                auth=self._auth,
                transport=self._transport,
            )
        try:
            yield self._client
        finally:
            # Keep open for reuse; explicit aclose() will close.
            ...

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Awaitable[Any]]):
        # Only connection failures are retried: the request never reached the gateway
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(httpx.ConnectError),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def _post_json(self, path: str, payload: dict[str, Any], *, operation: str) -> dict[str, Any]:
        """POST and decode JSON; every failure mode surfaces as GatewayException."""

        async def _send() -> httpx.Response:
            async with self.client() as http:
                return await http.post(path, json=payload)

        try:
            resp = await self._retry(_send)
        except httpx.TimeoutException as exc:
            self._log_error(operation, error="timeout")
            raise GatewayException(
                f"{self.provider} {operation} timed out",
                provider=self.provider,
                provider_code="TIMEOUT",
                recoverable=True,
            ) from exc
        except httpx.TransportError as exc:
            self._log_error(operation, error=str(exc))
            raise GatewayException(
                f"{self.provider} {operation} transport error: {exc}",
                provider=self.provider,
                provider_code="TRANSPORT",
                recoverable=True,
            ) from exc

        if resp.status_code >= 400:
            code, description = self._extract_error(resp)
            self._log_error(operation, status_code=resp.status_code, provider_code=code)
            raise GatewayException(
                description or f"{self.provider} {operation} failed with HTTP {resp.status_code}",
                provider=self.provider,
                provider_code=code,
                recoverable=resp.status_code >= 500 or resp.status_code == 429,
                details={"status_code": resp.status_code},
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise GatewayException(
                f"{self.provider} {operation} returned a non-JSON body",
                provider=self.provider,
                recoverable=False,
            ) from exc

    # Default implementations raise to force override where needed
    async def create_order(self, req: GatewayOrderRequest) -> GatewayOrder:  # type: ignore[override]
        raise NotImplementedError

    async def refund(self, req: GatewayRefundRequest) -> GatewayRefund:  # type: ignore[override]
        raise NotImplementedError

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        raise NotImplementedError

    # Helpers
    def _extract_error(self, resp: httpx.Response) -> tuple[Optional[str], Optional[str]]:
        return None, None

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )

    def _log_error(self, operation: str, **kwargs) -> None:
        logger.error(
            "payment_gateway_call_failed",
            provider=self.provider,
            operation=operation,
            **kwargs,
        )
