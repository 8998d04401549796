"""领域层业务异常基类。

core 层只负责把 code 映射为 HTTP 状态并渲染响应，领域层不反向依赖 core。
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类；error_type 会原样出现在响应的 error.type 中"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={int(self.code)}, error_type={self.error_type!r}, message={self.message!r})"


class ResourceNotFoundException(BusinessException):
    def __init__(self, message: str, *, error_type: str, details: Optional[dict] = None):
        super().__init__(code=BusinessCode.NOT_FOUND, message=message, error_type=error_type, details=details)


class DomainValidationException(BusinessException):
    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class InvalidAmountException(DomainValidationException):
    """金额必须严格为正"""

    def __init__(self, amount: Decimal | float | int | None, *, field: str = "amount", reason: str | None = None):
        super().__init__(
            reason or f"Amount must be greater than 0: {amount}",
            field=field,
            details={"amount": str(amount)},
        )
        self.error_type = "InvalidAmount"
