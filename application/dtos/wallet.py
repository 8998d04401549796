"""
Wallet DTOs (Pydantic v2).
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.wallet.entity import TransactionStatus, TransactionType


class WalletDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int]
    customer_id: str
    balance: Decimal
    currency: str
    active: bool
    locked: bool
    lock_reason: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WalletTransactionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    wallet_id: Optional[int]
    sequence: int
    type: TransactionType
    amount: Decimal
    balance_after: Decimal
    description: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    status: TransactionStatus
    created_at: Optional[datetime] = None


class WalletSummaryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: str
    exists: bool
    balance: Decimal
    currency: str
    total_credits: Decimal
    total_debits: Decimal
    total_refunds: Decimal
    total_cashback: Decimal
    total_bonus: Decimal
    transaction_count: int
    locked: bool
    lock_reason: Optional[str] = None
    active: bool


class BalanceDTO(BaseModel):
    customer_id: str
    balance: Decimal
    currency: str


class SufficientBalanceDTO(BaseModel):
    customer_id: str
    amount: Decimal
    sufficient: bool


class WalletOperationResult(BaseModel):
    """Outcome of a balance-changing call: the new state plus the entry it appended."""
    wallet: WalletDTO
    transaction: WalletTransactionDTO


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class AddMoneyRequest(BaseModel):
    # Positivity and currency precision are enforced by the ledger so every caller gets InvalidAmount
    amount: Decimal
    description: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    type: TransactionType = TransactionType.CREDIT


class PayRequest(BaseModel):
    amount: Decimal
    order_id: str
    description: Optional[str] = None


class WithdrawRequest(BaseModel):
    amount: Decimal
    method: str = "bank_transfer"
    description: Optional[str] = None


class ApplyVoucherRequest(BaseModel):
    voucher_code: str = Field(min_length=1, max_length=64)
    amount: Decimal
    description: Optional[str] = None


class LockWalletRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)
