"""Wallet ledger exceptions. All are raised before any mutation takes place."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from domain.common.exceptions import BusinessException, ResourceNotFoundException
from shared.codes.payment_codes import WalletCode


class WalletNotFoundException(ResourceNotFoundException):
    def __init__(self, customer_id: str):
        super().__init__(
            f"Wallet not found for customer {customer_id}",
            error_type="WalletNotFound",
            details={"customer_id": customer_id},
        )


class WalletLockedException(BusinessException):
    def __init__(self, customer_id: str, lock_reason: Optional[str]):
        super().__init__(
            code=WalletCode.WALLET_LOCKED,
            message=f"Wallet is locked: {lock_reason or 'no reason given'}",
            error_type="WalletLocked",
            details={"customer_id": customer_id, "lock_reason": lock_reason},
        )
        self.lock_reason = lock_reason


class WalletInactiveException(BusinessException):
    def __init__(self, customer_id: str):
        super().__init__(
            code=WalletCode.WALLET_INACTIVE,
            message="Wallet is deactivated",
            error_type="WalletInactive",
            details={"customer_id": customer_id},
        )


class InsufficientBalanceException(BusinessException):
    def __init__(self, customer_id: str, balance: Decimal, requested: Decimal):
        super().__init__(
            code=WalletCode.INSUFFICIENT_BALANCE,
            message=f"Insufficient balance: available {balance}, requested {requested}",
            error_type="InsufficientBalance",
            details={"customer_id": customer_id, "balance": str(balance), "requested": str(requested)},
            field="amount",
        )


class WalletConcurrencyException(BusinessException):
    """Version check failed: another writer committed first."""
    def __init__(self, customer_id: str, expected_version: int):
        super().__init__(
            code=WalletCode.CONCURRENT_UPDATE,
            message="Wallet was modified concurrently, please retry",
            error_type="WalletConcurrentUpdate",
            details={"customer_id": customer_id, "expected_version": expected_version},
        )
