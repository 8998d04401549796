"""create_payment_and_wallet_tables

Revision ID: 4c1f2a9e7b3d
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4c1f2a9e7b3d'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payment_orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('external_order_id', sa.String(length=100), nullable=False, comment='网关订单ID'),
        sa.Column('receipt', sa.String(length=100), nullable=False, comment='收据编号'),
        sa.Column('order_id', sa.String(length=100), nullable=True, comment='商城订单ID'),
        sa.Column('customer_id', sa.String(length=100), nullable=False, comment='客户ID'),
        sa.Column('vendor_id', sa.String(length=100), nullable=True, comment='商家ID'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='支付金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='INR', comment='货币代码 ISO-4217'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='created',
                  comment='支付状态: created/success/failed/refunded'),
        sa.Column('description', sa.String(length=500), nullable=True, comment='支付描述'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.Column('customer_name', sa.String(length=200), nullable=True),
        sa.Column('customer_email', sa.String(length=200), nullable=True),
        sa.Column('customer_phone', sa.String(length=50), nullable=True),
        sa.Column('external_payment_id', sa.String(length=100), nullable=True, comment='网关支付ID'),
        sa.Column('signature', sa.String(length=256), nullable=True, comment='校验签名'),
        sa.Column('rejected_payment_id', sa.String(length=100), nullable=True, comment='验签失败时提交的支付ID（审计）'),
        sa.Column('rejected_signature', sa.String(length=256), nullable=True, comment='验签失败时提交的签名（审计）'),
        sa.Column('refund_id', sa.String(length=100), nullable=True, comment='网关退款ID'),
        sa.Column('refund_amount', sa.Numeric(precision=15, scale=2), nullable=True, comment='退款金额'),
        sa.Column('refund_reason', sa.Text(), nullable=True, comment='退款原因'),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True, comment='退款时间'),
        sa.Column('error_code', sa.String(length=100), nullable=True),
        sa.Column('error_description', sa.Text(), nullable=True),
        sa.Column('webhook_received', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('webhook_received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True, comment='支付完成时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt'),
    )
    op.create_index('ix_payment_orders_id', 'payment_orders', ['id'], unique=False)
    op.create_index('ix_payment_orders_external_order_id', 'payment_orders', ['external_order_id'], unique=True)
    op.create_index('ix_payment_orders_order_id', 'payment_orders', ['order_id'], unique=False)
    op.create_index('ix_payment_orders_customer_id', 'payment_orders', ['customer_id'], unique=False)
    op.create_index('ix_payment_orders_vendor_id', 'payment_orders', ['vendor_id'], unique=False)
    op.create_index('ix_payment_orders_status', 'payment_orders', ['status'], unique=False)
    op.create_index('ix_payment_orders_external_payment_id', 'payment_orders', ['external_payment_id'], unique=False)
    op.create_index('ix_payment_orders_created_at', 'payment_orders', ['created_at'], unique=False)
    op.create_index('ix_payment_orders_customer_created', 'payment_orders', ['customer_id', 'created_at'], unique=False)
    op.create_index('ix_payment_orders_vendor_created', 'payment_orders', ['vendor_id', 'created_at'], unique=False)

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.String(length=100), nullable=False, comment='客户ID（一人一个钱包）'),
        sa.Column('balance', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0', comment='余额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='INR'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('lock_reason', sa.String(length=255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('balance >= 0', name='ck_wallets_balance_non_negative'),
    )
    op.create_index('ix_wallets_id', 'wallets', ['id'], unique=False)
    op.create_index('ix_wallets_customer_id', 'wallets', ['customer_id'], unique=True)

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('wallet_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False, comment='钱包内单调递增序号'),
        sa.Column('type', sa.String(length=20), nullable=False,
                  comment='credit/debit/refund/cashback/bonus/withdrawal'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('reference_id', sa.String(length=100), nullable=True),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('wallet_id', 'sequence', name='uq_wallet_transactions_wallet_sequence'),
    )
    op.create_index('ix_wallet_transactions_wallet_id', 'wallet_transactions', ['wallet_id'], unique=False)
    op.create_index('ix_wallet_transactions_type', 'wallet_transactions', ['type'], unique=False)
    op.create_index('ix_wallet_transactions_reference_id', 'wallet_transactions', ['reference_id'], unique=False)
    op.create_index('ix_wallet_transactions_wallet_type', 'wallet_transactions', ['wallet_id', 'type'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_wallet_transactions_wallet_type', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_reference_id', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_type', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_wallet_id', table_name='wallet_transactions')
    op.drop_table('wallet_transactions')

    op.drop_index('ix_wallets_customer_id', table_name='wallets')
    op.drop_index('ix_wallets_id', table_name='wallets')
    op.drop_table('wallets')

    for name in (
        'ix_payment_orders_vendor_created',
        'ix_payment_orders_customer_created',
        'ix_payment_orders_created_at',
        'ix_payment_orders_external_payment_id',
        'ix_payment_orders_status',
        'ix_payment_orders_vendor_id',
        'ix_payment_orders_customer_id',
        'ix_payment_orders_order_id',
        'ix_payment_orders_external_order_id',
        'ix_payment_orders_id',
    ):
        op.drop_index(name, table_name='payment_orders')
    op.drop_table('payment_orders')
