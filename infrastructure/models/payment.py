"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, Numeric, DateTime, Text, Index
)
from datetime import datetime, timezone

from .base import Base


class PaymentOrderModel(Base):
    """
    支付订单数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.payment.entity.PaymentOrder 中
    """
    __tablename__ = "payment_orders"

    # 主键
    id = Column(Integer, primary_key=True, index=True)

    # 网关订单与收据
    external_order_id = Column(String(100), unique=True, index=True, nullable=False, comment="网关订单ID")
    receipt = Column(String(100), unique=True, nullable=False, comment="收据编号")

    # 商城关联
    order_id = Column(String(100), nullable=True, index=True, comment="商城订单ID")
    customer_id = Column(String(100), nullable=False, index=True, comment="客户ID")
    vendor_id = Column(String(100), nullable=True, index=True, comment="商家ID")

    # 金额信息（使用 Numeric 存储精确金额）
    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="INR", comment="货币代码 ISO-4217")

    # 状态
    status = Column(
        String(20),
        nullable=False,
        default="created",
        index=True,
        comment="支付状态: created/success/failed/refunded"
    )

    description = Column(String(500), nullable=True, comment="支付描述")
    notes = Column(Text, nullable=True, comment="备注")

    # 客户快照
    customer_name = Column(String(200), nullable=True)
    customer_email = Column(String(200), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    # 支付凭证
    external_payment_id = Column(String(100), nullable=True, index=True, comment="网关支付ID")
    signature = Column(String(256), nullable=True, comment="校验签名")
    rejected_payment_id = Column(String(100), nullable=True, comment="验签失败时提交的支付ID（审计）")
    rejected_signature = Column(String(256), nullable=True, comment="验签失败时提交的签名（审计）")

    # 退款信息
    refund_id = Column(String(100), nullable=True, comment="网关退款ID")
    refund_amount = Column(Numeric(precision=15, scale=2), nullable=True, comment="退款金额")
    refund_reason = Column(Text, nullable=True, comment="退款原因")
    refunded_at = Column(DateTime(timezone=True), nullable=True, comment="退款时间")

    # 失败原因
    error_code = Column(String(100), nullable=True)
    error_description = Column(Text, nullable=True)

    webhook_received = Column(Boolean, nullable=False, default=False)
    webhook_received_at = Column(DateTime(timezone=True), nullable=True)

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    completed_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    # 索引
    __table_args__ = (
        Index("ix_payment_orders_customer_created", "customer_id", "created_at"),
        Index("ix_payment_orders_vendor_created", "vendor_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentOrderModel(id={self.id}, external_order_id='{self.external_order_id}', "
            f"amount={self.amount}, status='{self.status}')>"
        )
