"""
钱包仓储实现 - 行级锁读取 + 版本号比较写回
"""
from typing import List, Optional
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.wallet.entity import TransactionStatus, TransactionType, Wallet, WalletTransaction
from domain.wallet.exceptions import WalletConcurrencyException
from domain.wallet.repository import WalletAlreadyExistsError, WalletRepository
from infrastructure.models.wallet import WalletModel, WalletTransactionModel


logger = get_logger(__name__)


class SQLAlchemyWalletRepository(WalletRepository):
    """钱包仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: WalletModel) -> Wallet:
        return Wallet(
            id=model.id,
            customer_id=model.customer_id,
            balance=Decimal(str(model.balance)),
            currency=model.currency,
            active=bool(model.active),
            locked=bool(model.locked),
            lock_reason=model.lock_reason,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Wallet) -> WalletModel:
        return WalletModel(
            id=entity.id,
            customer_id=entity.customer_id,
            balance=entity.balance,
            currency=entity.currency,
            active=entity.active,
            locked=entity.locked,
            lock_reason=entity.lock_reason,
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    @staticmethod
    def _tx_to_entity(model: WalletTransactionModel) -> WalletTransaction:
        return WalletTransaction(
            id=model.id,
            wallet_id=model.wallet_id,
            sequence=model.sequence,
            type=TransactionType(model.type),
            amount=Decimal(str(model.amount)),
            balance_after=Decimal(str(model.balance_after)),
            description=model.description,
            reference_id=model.reference_id,
            reference_type=model.reference_type,
            status=TransactionStatus(model.status),
            created_at=model.created_at,
        )

    async def get_by_customer_id(self, customer_id: str, *, for_update: bool = False) -> Optional[Wallet]:
        query = select(WalletModel).where(WalletModel.customer_id == customer_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        db_wallet = result.scalar_one_or_none()
        return self._to_entity(db_wallet) if db_wallet else None

    async def create(self, wallet: Wallet) -> Wallet:
        try:
            db_wallet = self._to_model(wallet)
            self.session.add(db_wallet)
            await self.session.flush()
            await self.session.refresh(db_wallet)
        except IntegrityError:
            await self.session.rollback()
            logger.warning("wallet_create_conflict", customer_id=wallet.customer_id)
            raise WalletAlreadyExistsError(wallet.customer_id)
        return self._to_entity(db_wallet)

    async def update(self, wallet: Wallet, *, expected_version: int) -> Wallet:
        """Compare-and-swap on version; zero affected rows means another writer won."""
        result = await self.session.execute(
            update(WalletModel)
            .where(WalletModel.id == wallet.id, WalletModel.version == expected_version)
            .values(
                balance=wallet.balance,
                currency=wallet.currency,
                active=wallet.active,
                locked=wallet.locked,
                lock_reason=wallet.lock_reason,
                version=wallet.version,
                updated_at=wallet.updated_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            logger.warning(
                "wallet_version_conflict",
                customer_id=wallet.customer_id,
                expected_version=expected_version,
            )
            raise WalletConcurrencyException(wallet.customer_id, expected_version)
        return wallet

    async def add_transaction(self, transaction: WalletTransaction) -> WalletTransaction:
        db_tx = WalletTransactionModel(
            id=transaction.id,
            wallet_id=transaction.wallet_id,
            sequence=transaction.sequence,
            type=transaction.type.value,
            amount=transaction.amount,
            balance_after=transaction.balance_after,
            description=transaction.description,
            reference_id=transaction.reference_id,
            reference_type=transaction.reference_type,
            status=transaction.status.value,
            created_at=transaction.created_at,
        )
        self.session.add(db_tx)
        await self.session.flush()
        return transaction

    async def list_transactions(
        self,
        wallet_id: int,
        *,
        limit: Optional[int] = None,
        tx_type: Optional[TransactionType] = None,
    ) -> List[WalletTransaction]:
        query = select(WalletTransactionModel).where(WalletTransactionModel.wallet_id == wallet_id)
        if tx_type is not None:
            query = query.where(WalletTransactionModel.type == tx_type.value)
        query = query.order_by(WalletTransactionModel.sequence.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return [self._tx_to_entity(t) for t in result.scalars().all()]
