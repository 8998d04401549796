"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.payment.repository import PaymentOrderRepository
from domain.wallet.repository import WalletRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界

    正常退出且未显式提交时自动提交；异常退出一律回滚。
    readonly=True 的 UoW 从不提交，用于查询路径。
    """

    payment_order_repository: PaymentOrderRepository
    wallet_repository: WalletRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.payment_order_repository = None  # type: ignore[assignment]
        self.wallet_repository = None  # type: ignore[assignment]

    @property
    def readonly(self) -> bool:
        return self._readonly

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            await self.rollback()
        elif not self._readonly and not self._committed:
            await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
