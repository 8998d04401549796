"""
钱包仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import TransactionType, Wallet, WalletTransaction


class WalletRepository(ABC):
    """钱包与交易流水的仓储抽象"""

    @abstractmethod
    async def get_by_customer_id(self, customer_id: str, *, for_update: bool = False) -> Optional[Wallet]:
        """根据客户ID获取钱包；for_update 时在当前事务内锁定该行"""

    @abstractmethod
    async def create(self, wallet: Wallet) -> Wallet:
        """创建钱包，客户已有钱包时抛出 WalletAlreadyExistsError"""

    @abstractmethod
    async def update(self, wallet: Wallet, *, expected_version: int) -> Wallet:
        """按版本号比较并写回钱包，版本不一致抛出 WalletConcurrencyException"""

    @abstractmethod
    async def add_transaction(self, transaction: WalletTransaction) -> WalletTransaction:
        """追加一条交易流水"""

    @abstractmethod
    async def list_transactions(
        self,
        wallet_id: int,
        *,
        limit: Optional[int] = None,
        tx_type: Optional[TransactionType] = None,
    ) -> List[WalletTransaction]:
        """按 sequence 倒序返回流水（最新在前）"""


class WalletAlreadyExistsError(Exception):
    """Unique customer_id violated; the caller re-reads the winner's wallet."""

    def __init__(self, customer_id: str):
        super().__init__(f"Wallet already exists for customer {customer_id}")
        self.customer_id = customer_id
