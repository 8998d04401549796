"""
支付仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.payment.entity import PaymentOrder, PaymentOrderStatus
from domain.payment.exceptions import PaymentNotFoundException
from domain.payment.repository import PaymentOrderRepository
from infrastructure.models.payment import PaymentOrderModel
from core.logging_config import get_logger


logger = get_logger(__name__)

# 实体中由状态转换修改、需要写回的字段
_MUTABLE_FIELDS = (
    "status",
    "external_payment_id",
    "signature",
    "rejected_payment_id",
    "rejected_signature",
    "refund_id",
    "refund_amount",
    "refund_reason",
    "refunded_at",
    "error_code",
    "error_description",
    "webhook_received",
    "webhook_received_at",
    "completed_at",
    "updated_at",
)


def _decimal(value) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


class SQLAlchemyPaymentOrderRepository(PaymentOrderRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentOrderModel) -> PaymentOrder:
        """将数据库模型转换为领域实体"""
        return PaymentOrder(
            id=model.id,
            external_order_id=model.external_order_id,
            customer_id=model.customer_id,
            amount=_decimal(model.amount),
            currency=model.currency,
            status=PaymentOrderStatus(model.status),
            receipt=model.receipt,
            order_id=model.order_id,
            vendor_id=model.vendor_id,
            description=model.description,
            notes=model.notes,
            customer_name=model.customer_name,
            customer_email=model.customer_email,
            customer_phone=model.customer_phone,
            external_payment_id=model.external_payment_id,
            signature=model.signature,
            rejected_payment_id=model.rejected_payment_id,
            rejected_signature=model.rejected_signature,
            refund_id=model.refund_id,
            refund_amount=_decimal(model.refund_amount),
            refund_reason=model.refund_reason,
            refunded_at=model.refunded_at,
            error_code=model.error_code,
            error_description=model.error_description,
            webhook_received=bool(model.webhook_received),
            webhook_received_at=model.webhook_received_at,
            created_at=model.created_at,
            completed_at=model.completed_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: PaymentOrder) -> PaymentOrderModel:
        """将领域实体转换为数据库模型"""
        return PaymentOrderModel(
            id=entity.id,
            external_order_id=entity.external_order_id,
            receipt=entity.receipt,
            order_id=entity.order_id,
            customer_id=entity.customer_id,
            vendor_id=entity.vendor_id,
            amount=entity.amount,
            currency=entity.currency,
            status=entity.status.value,
            description=entity.description,
            notes=entity.notes,
            customer_name=entity.customer_name,
            customer_email=entity.customer_email,
            customer_phone=entity.customer_phone,
            external_payment_id=entity.external_payment_id,
            signature=entity.signature,
            rejected_payment_id=entity.rejected_payment_id,
            rejected_signature=entity.rejected_signature,
            refund_id=entity.refund_id,
            refund_amount=entity.refund_amount,
            refund_reason=entity.refund_reason,
            refunded_at=entity.refunded_at,
            error_code=entity.error_code,
            error_description=entity.error_description,
            webhook_received=entity.webhook_received,
            webhook_received_at=entity.webhook_received_at,
            created_at=entity.created_at,
            completed_at=entity.completed_at,
            updated_at=entity.updated_at,
        )

    async def create(self, payment: PaymentOrder) -> PaymentOrder:
        """创建支付记录"""
        db_payment = self._to_model(payment)
        self.session.add(db_payment)
        await self.session.flush()
        await self.session.refresh(db_payment)
        logger.info(
            "payment_order_persisted",
            payment_id=db_payment.id,
            external_order_id=db_payment.external_order_id,
            receipt=db_payment.receipt,
        )
        return self._to_entity(db_payment)

    async def _get_one(self, *criteria, for_update: bool = False) -> Optional[PaymentOrderModel]:
        query = select(PaymentOrderModel).where(*criteria)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id(self, payment_id: int, *, for_update: bool = False) -> Optional[PaymentOrder]:
        """根据ID获取支付"""
        db_payment = await self._get_one(PaymentOrderModel.id == payment_id, for_update=for_update)
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_external_order_id(
        self, external_order_id: str, *, for_update: bool = False
    ) -> Optional[PaymentOrder]:
        db_payment = await self._get_one(
            PaymentOrderModel.external_order_id == external_order_id, for_update=for_update
        )
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_external_payment_id(
        self, external_payment_id: str, *, for_update: bool = False
    ) -> Optional[PaymentOrder]:
        query = (
            select(PaymentOrderModel)
            .where(PaymentOrderModel.external_payment_id == external_payment_id)
            .order_by(PaymentOrderModel.id.desc())
            .limit(1)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        db_payment = result.scalars().first()
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_order_id(self, order_id: str) -> Optional[PaymentOrder]:
        """根据商城订单ID获取最近一笔支付"""
        result = await self.session.execute(
            select(PaymentOrderModel)
            .where(PaymentOrderModel.order_id == order_id)
            .order_by(PaymentOrderModel.created_at.desc(), PaymentOrderModel.id.desc())
            .limit(1)
        )
        db_payment = result.scalars().first()
        return self._to_entity(db_payment) if db_payment else None

    async def list_by_customer(self, customer_id: str, skip: int = 0, limit: int = 100) -> List[PaymentOrder]:
        """获取客户的支付列表"""
        result = await self.session.execute(
            select(PaymentOrderModel)
            .where(PaymentOrderModel.customer_id == customer_id)
            .order_by(PaymentOrderModel.created_at.desc(), PaymentOrderModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(p) for p in result.scalars().all()]

    async def list_by_vendor(self, vendor_id: str, skip: int = 0, limit: int = 100) -> List[PaymentOrder]:
        """获取商家的支付列表"""
        result = await self.session.execute(
            select(PaymentOrderModel)
            .where(PaymentOrderModel.vendor_id == vendor_id)
            .order_by(PaymentOrderModel.created_at.desc(), PaymentOrderModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(p) for p in result.scalars().all()]

    async def update(self, payment: PaymentOrder) -> PaymentOrder:
        """更新支付记录"""
        db_payment = await self._get_one(PaymentOrderModel.id == payment.id)
        if not db_payment:
            raise PaymentNotFoundException(f"id={payment.id}")

        for name in _MUTABLE_FIELDS:
            value = getattr(payment, name)
            setattr(db_payment, name, value.value if name == "status" else value)

        await self.session.flush()
        await self.session.refresh(db_payment)

        logger.info(
            "payment_order_updated",
            payment_id=db_payment.id,
            external_order_id=db_payment.external_order_id,
            status=db_payment.status,
        )
        return self._to_entity(db_payment)
