"""
钱包应用服务（application/services）- 客户钱包账本

每次余额或状态变更都在同一客户锁内、同一事务内完成：
行级锁读取 -> 领域校验 -> 版本号比较写回 -> 追加流水。
版本冲突时整体重试有限次数。
"""
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random

from application.dtos.wallet import (
    BalanceDTO,
    SufficientBalanceDTO,
    WalletDTO,
    WalletOperationResult,
    WalletSummaryDTO,
    WalletTransactionDTO,
)
from application.ports.locks import CustomerLockProvider
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.wallet.entity import TransactionType, Wallet, WalletTransaction
from domain.wallet.exceptions import WalletConcurrencyException, WalletNotFoundException
from domain.wallet.repository import WalletAlreadyExistsError
from domain.wallet.service import WalletDomainService


logger = get_logger(__name__)

DEFAULT_WITHDRAWAL_METHOD = "bank_transfer"

# Mutation applied to the row-locked wallet; returns the appended entry, if any
Mutation = Callable[[Wallet], Optional[WalletTransaction]]


class WalletApplicationService:
    """钱包应用服务"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        locks: CustomerLockProvider,
        *,
        default_currency: str = "INR",
        max_cas_retries: int = 3,
    ) -> None:
        self._uow_factory = uow_factory
        self._locks = locks
        self._default_currency = default_currency
        self._max_cas_retries = max_cas_retries

    # ------------------------------------------------------------------
    # Wallet lifecycle
    # ------------------------------------------------------------------
    async def get_or_create(self, customer_id: str) -> WalletDTO:
        """获取客户钱包，不存在则以默认币种创建"""
        async with self._locks.lock(customer_id):
            try:
                async with self._uow_factory() as uow:
                    wallet = await uow.wallet_repository.get_by_customer_id(customer_id)
                    if wallet is None:
                        wallet = await uow.wallet_repository.create(Wallet.open(customer_id, self._default_currency))
                        logger.info("wallet_created", customer_id=customer_id, wallet_id=wallet.id)
                    return self._to_dto(wallet)
            except WalletAlreadyExistsError:
                # another process won the insert
                async with self._uow_factory(readonly=True) as uow:
                    wallet = await uow.wallet_repository.get_by_customer_id(customer_id)
                    return self._to_dto(wallet)

    async def lock(self, customer_id: str, reason: Optional[str] = None) -> WalletDTO:
        wallet, _ = await self._mutate(customer_id, "lock", lambda w: w.lock(reason), create_missing=False)
        logger.warning("wallet_locked", customer_id=customer_id, reason=reason)
        return self._to_dto(wallet)

    async def unlock(self, customer_id: str) -> WalletDTO:
        wallet, _ = await self._mutate(customer_id, "unlock", lambda w: w.unlock(), create_missing=False)
        logger.info("wallet_unlocked", customer_id=customer_id)
        return self._to_dto(wallet)

    async def deactivate(self, customer_id: str) -> WalletDTO:
        wallet, _ = await self._mutate(customer_id, "deactivate", lambda w: w.deactivate(), create_missing=False)
        logger.warning("wallet_deactivated", customer_id=customer_id)
        return self._to_dto(wallet)

    async def reactivate(self, customer_id: str) -> WalletDTO:
        wallet, _ = await self._mutate(customer_id, "reactivate", lambda w: w.reactivate(), create_missing=False)
        logger.info("wallet_reactivated", customer_id=customer_id)
        return self._to_dto(wallet)

    # ------------------------------------------------------------------
    # Balance changes
    # ------------------------------------------------------------------
    async def credit(
        self,
        customer_id: str,
        amount: Decimal,
        description: Optional[str] = None,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        tx_type: TransactionType = TransactionType.CREDIT,
    ) -> WalletOperationResult:
        """入账；钱包不存在时自动创建"""
        wallet, tx = await self._mutate(
            customer_id,
            "credit",
            lambda w: w.credit(amount, description, reference_id, reference_type, tx_type=tx_type),
            create_missing=True,
        )
        logger.info(
            "wallet_credited",
            customer_id=customer_id,
            type=tx.type.value,
            amount=str(tx.amount),
            balance=str(wallet.balance),
            transaction_id=tx.id,
        )
        return self._to_result(wallet, tx)

    async def debit(
        self,
        customer_id: str,
        amount: Decimal,
        description: Optional[str] = None,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        tx_type: TransactionType = TransactionType.DEBIT,
    ) -> WalletOperationResult:
        """出账；钱包必须已存在且余额充足"""
        wallet, tx = await self._mutate(
            customer_id,
            "debit",
            lambda w: w.debit(amount, description, reference_id, reference_type, tx_type=tx_type),
            create_missing=False,
        )
        logger.info(
            "wallet_debited",
            customer_id=customer_id,
            type=tx.type.value,
            amount=str(tx.amount),
            balance=str(wallet.balance),
            transaction_id=tx.id,
        )
        return self._to_result(wallet, tx)

    async def pay_with_wallet(
        self,
        customer_id: str,
        amount: Decimal,
        order_id: str,
        description: Optional[str] = None,
    ) -> WalletOperationResult:
        return await self.debit(
            customer_id,
            amount,
            description or f"Payment for order #{order_id}",
            reference_id=order_id,
            reference_type="order",
        )

    async def withdraw(
        self,
        customer_id: str,
        amount: Decimal,
        method: Optional[str] = None,
        description: Optional[str] = None,
    ) -> WalletOperationResult:
        method = method if method and method.strip() else DEFAULT_WITHDRAWAL_METHOD
        return await self.debit(
            customer_id,
            amount,
            description or f"Withdrawal via {method}",
            reference_id=f"WD-{uuid.uuid4().hex[:16].upper()}",
            reference_type="withdrawal",
            tx_type=TransactionType.WITHDRAWAL,
        )

    async def apply_voucher(
        self,
        customer_id: str,
        voucher_code: str,
        amount: Decimal,
        description: Optional[str] = None,
    ) -> WalletOperationResult:
        return await self.credit(
            customer_id,
            amount,
            description or f"Voucher applied: {voucher_code}",
            reference_id=voucher_code,
            reference_type="bonus",
            tx_type=TransactionType.BONUS,
        )

    async def refund_to_wallet(
        self,
        customer_id: str,
        amount: Decimal,
        order_id: str,
        description: Optional[str] = None,
    ) -> WalletOperationResult:
        return await self.credit(
            customer_id,
            amount,
            description or f"Refund for order #{order_id}",
            reference_id=order_id,
            reference_type="refund",
            tx_type=TransactionType.REFUND,
        )

    async def add_cashback(
        self,
        customer_id: str,
        amount: Decimal,
        order_id: str,
        description: Optional[str] = None,
    ) -> WalletOperationResult:
        return await self.credit(
            customer_id,
            amount,
            description or f"Cashback for order #{order_id}",
            reference_id=order_id,
            reference_type="cashback",
            tx_type=TransactionType.CASHBACK,
        )

    # ------------------------------------------------------------------
    # Queries (never create a wallet)
    # ------------------------------------------------------------------
    async def get_balance(self, customer_id: str) -> BalanceDTO:
        async with self._uow_factory(readonly=True) as uow:
            wallet = await uow.wallet_repository.get_by_customer_id(customer_id)
        if wallet is None:
            return BalanceDTO(customer_id=customer_id, balance=Decimal("0"), currency=self._default_currency)
        return BalanceDTO(customer_id=customer_id, balance=wallet.balance, currency=wallet.currency)

    async def has_sufficient_balance(self, customer_id: str, amount: Decimal) -> SufficientBalanceDTO:
        balance = await self.get_balance(customer_id)
        return SufficientBalanceDTO(customer_id=customer_id, amount=amount, sufficient=balance.balance >= amount)

    async def transaction_history(self, customer_id: str) -> List[WalletTransactionDTO]:
        """全部流水，最新在前"""
        return await self._list_transactions(customer_id)

    async def recent_transactions(self, customer_id: str, limit: int = 10) -> List[WalletTransactionDTO]:
        return await self._list_transactions(customer_id, limit=max(limit, 0))

    async def transactions_by_type(self, customer_id: str, tx_type: TransactionType) -> List[WalletTransactionDTO]:
        return await self._list_transactions(customer_id, tx_type=tx_type)

    async def summary(self, customer_id: str) -> WalletSummaryDTO:
        async with self._uow_factory(readonly=True) as uow:
            wallet = await uow.wallet_repository.get_by_customer_id(customer_id)
            transactions = (
                await uow.wallet_repository.list_transactions(wallet.id) if wallet is not None else []
            )
        summary = WalletDomainService.summarize(wallet, transactions)
        return WalletSummaryDTO(
            customer_id=customer_id,
            exists=summary.exists,
            balance=summary.balance,
            currency=summary.currency or self._default_currency,
            total_credits=summary.total_credits,
            total_debits=summary.total_debits,
            total_refunds=summary.total_refunds,
            total_cashback=summary.total_cashback,
            total_bonus=summary.total_bonus,
            transaction_count=summary.transaction_count,
            locked=summary.locked,
            lock_reason=summary.lock_reason,
            active=summary.active,
        )

    async def _list_transactions(
        self,
        customer_id: str,
        *,
        limit: Optional[int] = None,
        tx_type: Optional[TransactionType] = None,
    ) -> List[WalletTransactionDTO]:
        async with self._uow_factory(readonly=True) as uow:
            wallet = await uow.wallet_repository.get_by_customer_id(customer_id)
            if wallet is None:
                return []
            transactions = await uow.wallet_repository.list_transactions(wallet.id, limit=limit, tx_type=tx_type)
        return [WalletTransactionDTO.model_validate(t) for t in transactions]

    # ------------------------------------------------------------------
    # Read-validate-write unit
    # ------------------------------------------------------------------
    async def _mutate(
        self,
        customer_id: str,
        operation: str,
        mutation: Mutation,
        *,
        create_missing: bool,
    ) -> Tuple[Wallet, Optional[WalletTransaction]]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_cas_retries + 1),
            wait=wait_random(min=0.01, max=0.05),
            retry=retry_if_exception_type((WalletConcurrencyException, WalletAlreadyExistsError)),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "wallet_update_retry",
                        customer_id=customer_id,
                        operation=operation,
                        attempt=attempt.retry_state.attempt_number,
                    )
                async with self._locks.lock(customer_id):
                    return await self._mutate_once(customer_id, operation, mutation, create_missing)

    async def _mutate_once(
        self,
        customer_id: str,
        operation: str,
        mutation: Mutation,
        create_missing: bool,
    ) -> Tuple[Wallet, Optional[WalletTransaction]]:
        async with self._uow_factory() as uow:
            repo = uow.wallet_repository
            wallet = await repo.get_by_customer_id(customer_id, for_update=True)
            if wallet is None:
                if not create_missing:
                    raise WalletNotFoundException(customer_id)
                wallet = await repo.create(Wallet.open(customer_id, self._default_currency))
                logger.info("wallet_created", customer_id=customer_id, wallet_id=wallet.id)

            expected_version = wallet.version
            try:
                tx = mutation(wallet)
            except BusinessException as exc:
                logger.warning(
                    f"wallet_{operation}_rejected",
                    customer_id=customer_id,
                    error_type=exc.error_type,
                    reason=exc.message,
                )
                raise

            saved = await repo.update(wallet, expected_version=expected_version)
            if tx is not None:
                tx = await repo.add_transaction(tx)
            return saved, tx

    @staticmethod
    def _to_dto(wallet: Wallet) -> WalletDTO:
        return WalletDTO.model_validate(wallet)

    @classmethod
    def _to_result(cls, wallet: Wallet, tx: WalletTransaction) -> WalletOperationResult:
        return WalletOperationResult(
            wallet=cls._to_dto(wallet),
            transaction=WalletTransactionDTO.model_validate(tx),
        )
