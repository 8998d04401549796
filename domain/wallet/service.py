"""
钱包领域服务 - 基于完整流水的聚合统计
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from .entity import TransactionType, Wallet, WalletTransaction


@dataclass
class WalletSummary:
    exists: bool
    balance: Decimal
    currency: Optional[str] = None
    total_credits: Decimal = Decimal("0")
    total_debits: Decimal = Decimal("0")
    total_refunds: Decimal = Decimal("0")
    total_cashback: Decimal = Decimal("0")
    total_bonus: Decimal = Decimal("0")
    transaction_count: int = 0
    locked: bool = False
    lock_reason: Optional[str] = None
    active: bool = False


class WalletDomainService:
    """Stateless ledger computations shared by the application service and tests."""

    @staticmethod
    def replay_balance(transactions: Iterable[WalletTransaction]) -> Decimal:
        """Sum of credits minus sum of debits over the whole history."""
        return sum((t.signed_amount for t in transactions), Decimal("0"))

    @staticmethod
    def summarize(wallet: Optional[Wallet], transactions: Iterable[WalletTransaction]) -> WalletSummary:
        if wallet is None:
            return WalletSummary(exists=False, balance=Decimal("0"))

        summary = WalletSummary(
            exists=True,
            balance=wallet.balance,
            currency=wallet.currency,
            locked=wallet.locked,
            lock_reason=wallet.lock_reason,
            active=wallet.active,
        )
        for t in transactions:
            summary.transaction_count += 1
            if t.is_credit:
                summary.total_credits += t.amount
            else:
                summary.total_debits += t.amount
            if t.type == TransactionType.REFUND:
                summary.total_refunds += t.amount
            elif t.type == TransactionType.CASHBACK:
                summary.total_cashback += t.amount
            elif t.type == TransactionType.BONUS:
                summary.total_bonus += t.amount
        return summary
