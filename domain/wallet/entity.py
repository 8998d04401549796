"""
钱包领域实体 - Wallet 聚合根与只追加的交易流水
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.common.money import validate_amount
from .exceptions import (
    InsufficientBalanceException,
    WalletInactiveException,
    WalletLockedException,
)


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    REFUND = "refund"
    CASHBACK = "cashback"
    BONUS = "bonus"
    WITHDRAWAL = "withdrawal"


CREDIT_TYPES = frozenset({
    TransactionType.CREDIT,
    TransactionType.REFUND,
    TransactionType.CASHBACK,
    TransactionType.BONUS,
})
DEBIT_TYPES = frozenset({TransactionType.DEBIT, TransactionType.WITHDRAWAL})


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    # reserved
    PENDING = "pending"
    REVERSED = "reversed"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def new_transaction_id() -> str:
    return f"TXN-{uuid.uuid4().hex[:20].upper()}"


@dataclass(frozen=True)
class WalletTransaction:
    """Immutable ledger entry. `sequence` orders entries within one wallet."""

    id: str
    wallet_id: Optional[int]
    sequence: int
    type: TransactionType
    amount: Decimal
    balance_after: Decimal
    description: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    created_at: Optional[datetime] = None

    @property
    def is_credit(self) -> bool:
        return self.type in CREDIT_TYPES

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_credit else -self.amount


@dataclass
class Wallet:
    """
    钱包聚合根

    业务规则：
    1. 每个客户仅一个钱包
    2. 余额不可为负
    3. 锁定或停用的钱包不能追加任何交易
    4. 每次余额变更恰好追加一条交易，version 同步递增
    """

    id: Optional[int]
    customer_id: str
    balance: Decimal
    currency: str
    active: bool = True
    locked: bool = False
    lock_reason: Optional[str] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.balance < 0:
            raise DomainValidationException(f"Wallet balance cannot be negative: {self.balance}", field="balance")
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(f"Invalid currency code: {self.currency}", field="currency")
        self.currency = self.currency.upper()
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @classmethod
    def open(cls, customer_id: str, currency: str) -> "Wallet":
        now = datetime.now(timezone.utc)
        return cls(
            id=None,
            customer_id=customer_id,
            balance=Decimal("0"),
            currency=currency,
            created_at=now,
            updated_at=now,
        )

    def ensure_transactable(self) -> None:
        if self.locked:
            raise WalletLockedException(self.customer_id, self.lock_reason)
        if not self.active:
            raise WalletInactiveException(self.customer_id)

    def credit(
        self,
        amount: Decimal,
        description: Optional[str],
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        tx_type: TransactionType = TransactionType.CREDIT,
    ) -> WalletTransaction:
        if tx_type not in CREDIT_TYPES:
            raise DomainValidationException(f"{tx_type.value} is not a credit type", field="type")
        amount = validate_amount(amount, self.currency)
        self.ensure_transactable()
        self.balance += amount
        return self._append(tx_type, amount, description, reference_id, reference_type)

    def debit(
        self,
        amount: Decimal,
        description: Optional[str],
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        tx_type: TransactionType = TransactionType.DEBIT,
    ) -> WalletTransaction:
        if tx_type not in DEBIT_TYPES:
            raise DomainValidationException(f"{tx_type.value} is not a debit type", field="type")
        amount = validate_amount(amount, self.currency)
        self.ensure_transactable()
        if self.balance < amount:
            raise InsufficientBalanceException(self.customer_id, self.balance, amount)
        self.balance -= amount
        return self._append(tx_type, amount, description, reference_id, reference_type)

    def _append(
        self,
        tx_type: TransactionType,
        amount: Decimal,
        description: Optional[str],
        reference_id: Optional[str],
        reference_type: Optional[str],
    ) -> WalletTransaction:
        self._touch()
        return WalletTransaction(
            id=new_transaction_id(),
            wallet_id=self.id,
            sequence=self.version,
            type=tx_type,
            amount=amount,
            balance_after=self.balance,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
            created_at=self.updated_at,
        )

    def lock(self, reason: Optional[str]) -> None:
        self.locked = True
        self.lock_reason = reason
        self._touch()

    def unlock(self) -> None:
        self.locked = False
        self.lock_reason = None
        self._touch()

    def deactivate(self) -> None:
        self.active = False
        self._touch()

    def reactivate(self) -> None:
        self.active = True
        self._touch()

    def _touch(self) -> None:
        self.version += 1
        self.updated_at = datetime.now(timezone.utc)
