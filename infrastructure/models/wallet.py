"""
钱包数据库模型
"""
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Integer, String, Numeric, DateTime, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class WalletModel(Base):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String(100), unique=True, index=True, nullable=False, comment="客户ID（一人一个钱包）")
    balance = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="余额")
    currency = Column(String(3), nullable=False, default="INR")
    active = Column(Boolean, nullable=False, default=True)
    locked = Column(Boolean, nullable=False, default=False)
    lock_reason = Column(String(255), nullable=True)
    # 乐观锁版本号，每次变更 +1
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    transactions = relationship("WalletTransactionModel", back_populates="wallet", lazy="select")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    def __repr__(self):
        return (
            f"<WalletModel(id={self.id}, customer_id='{self.customer_id}', "
            f"balance={self.balance}, version={self.version})>"
        )


class WalletTransactionModel(Base):
    """只追加的钱包流水"""
    __tablename__ = "wallet_transactions"

    # TXN-XXXX 形式的业务主键
    id = Column(String(32), primary_key=True)
    wallet_id = Column(
        Integer,
        ForeignKey("wallets.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    sequence = Column(Integer, nullable=False, comment="钱包内单调递增序号")
    type = Column(String(20), nullable=False, index=True, comment="credit/debit/refund/cashback/bonus/withdrawal")
    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    balance_after = Column(Numeric(precision=15, scale=2), nullable=False)
    description = Column(String(500), nullable=True)
    reference_id = Column(String(100), nullable=True, index=True)
    reference_type = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    wallet = relationship("WalletModel", back_populates="transactions")

    __table_args__ = (
        UniqueConstraint("wallet_id", "sequence", name="uq_wallet_transactions_wallet_sequence"),
        Index("ix_wallet_transactions_wallet_type", "wallet_id", "type"),
    )

    def __repr__(self):
        return (
            f"<WalletTransactionModel(id='{self.id}', wallet_id={self.wallet_id}, "
            f"sequence={self.sequence}, type='{self.type}', amount={self.amount})>"
        )
