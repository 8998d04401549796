"""金额精度规则：金额不得超过币种允许的小数位"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from domain.common.exceptions import InvalidAmountException


ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})


def currency_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Major units (e.g. rupees) to the gateway's smallest unit (e.g. paise)."""
    return int((amount * (Decimal(10) ** currency_exponent(currency))).to_integral_value())


def validate_amount(amount: Any, currency: str, *, field: str = "amount") -> Decimal:
    """
    校验并返回金额

    金额必须为有限正数，且小数位不超过币种精度（INR 两位，JPY/KRW 零位）。
    超出精度的金额直接拒绝，不做舍入，避免落库值与账面值不一致。
    """
    if amount is None:
        raise InvalidAmountException(amount, field=field)
    exponent = currency_exponent(currency)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        if not value.is_finite() or value <= 0:
            raise InvalidAmountException(amount, field=field)
        rounded = value.quantize(Decimal(1).scaleb(-exponent))
    except InvalidOperation:
        raise InvalidAmountException(amount, field=field, reason=f"Invalid amount: {amount}")
    if value != rounded:
        raise InvalidAmountException(
            amount,
            field=field,
            reason=f"Amount {amount} has more than {exponent} decimal places allowed for {currency.upper()}",
        )
    return value
