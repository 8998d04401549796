"""
请求/响应访问日志中间件

- 每个请求记录一次开始、一次结束（含耗时与状态码）
- JSON 请求体按配置截断并脱敏后记录；支付签名、密钥、客户联系方式不会出现在日志中
- Webhook 请求体只记录长度：原始字节用于验签，不做解析
"""
import json
import time
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

REDACTED = "***"


class LoggingMiddleware(BaseHTTPMiddleware):
    """访问日志"""

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}
    RAW_BODY_PREFIXES = ("/api/v1/payments/webhooks/",)

    # 完全隐藏
    SENSITIVE_FIELDS = {
        "signature", "razorpay_signature", "key_secret", "webhook_secret",
        "secret", "token", "password", "api_key",
    }
    # 部分掩码（保留末四位）
    MASKED_FIELDS = {"customer_email", "customer_phone", "email", "phone", "contact"}

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.log_body: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        info = await self._describe(request)
        logger.info("request_started", **info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=self._elapsed_ms(started),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **info,
            )
            raise

        duration_ms = self._elapsed_ms(started)
        self._log_completion(response, duration_ms, info)
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    async def _describe(self, request: Request) -> dict:
        info: dict[str, Any] = {"method": request.method, "path": request.url.path}
        if request.query_params:
            info["query_params"] = dict(request.query_params)
        if request.method not in {"POST", "PUT", "PATCH"}:
            return info

        body = await request.body()
        if not body:
            return info
        if request.url.path.startswith(self.RAW_BODY_PREFIXES):
            info["body_bytes"] = len(body)
        elif self._body_logging_enabled(request):
            info["body"] = self._parse_body(request, body)
        return info

    def _body_logging_enabled(self, request: Request) -> bool:
        # X-Log-Body: true/false 覆盖默认值
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return self.log_body and settings.DEBUG

    def _parse_body(self, request: Request, body: bytes) -> Any:
        if "application/json" not in request.headers.get("content-type", "").lower():
            return {"content_type": request.headers.get("content-type"), "bytes": len(body)}
        if len(body) > self.max_body_bytes:
            return {"truncated": True, "bytes": len(body)}
        try:
            return self._sanitize(json.loads(body))
        except ValueError:
            return {"invalid_json": True, "bytes": len(body)}

    def _sanitize(self, data: Any) -> Any:
        if isinstance(data, dict):
            cleaned = {}
            for key, value in data.items():
                lowered = str(key).lower()
                if lowered in self.SENSITIVE_FIELDS:
                    cleaned[key] = REDACTED
                elif lowered in self.MASKED_FIELDS and isinstance(value, str):
                    cleaned[key] = REDACTED + value[-4:] if len(value) > 4 else REDACTED
                else:
                    cleaned[key] = self._sanitize(value)
            return cleaned
        if isinstance(data, list):
            return [self._sanitize(v) for v in data]
        return data

    @staticmethod
    def _log_completion(response: Response, duration_ms: float, info: dict) -> None:
        status_code = response.status_code
        if status_code < 400:
            log, event = logger.info, "request_completed"
        elif status_code < 500:
            log, event = logger.warning, "request_client_error"
        else:
            log, event = logger.error, "request_server_error"
        log(event, status_code=status_code, duration_ms=duration_ms, **info)
