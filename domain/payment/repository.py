"""
支付仓储接口 - 定义 PaymentOrder 数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import PaymentOrder


class PaymentOrderRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment: PaymentOrder) -> PaymentOrder:
        """创建支付记录"""

    @abstractmethod
    async def get_by_id(self, payment_id: int, *, for_update: bool = False) -> Optional[PaymentOrder]:
        """根据内部ID获取支付"""

    @abstractmethod
    async def get_by_external_order_id(
        self, external_order_id: str, *, for_update: bool = False
    ) -> Optional[PaymentOrder]:
        """根据网关订单ID获取支付"""

    @abstractmethod
    async def get_by_external_payment_id(
        self, external_payment_id: str, *, for_update: bool = False
    ) -> Optional[PaymentOrder]:
        """根据网关支付ID获取支付"""

    @abstractmethod
    async def get_by_order_id(self, order_id: str) -> Optional[PaymentOrder]:
        """根据商城订单ID获取最近一笔支付"""

    @abstractmethod
    async def list_by_customer(self, customer_id: str, skip: int = 0, limit: int = 100) -> List[PaymentOrder]:
        """获取客户的支付列表（新的在前）"""

    @abstractmethod
    async def list_by_vendor(self, vendor_id: str, skip: int = 0, limit: int = 100) -> List[PaymentOrder]:
        """获取商家的支付列表（新的在前）"""

    @abstractmethod
    async def update(self, payment: PaymentOrder) -> PaymentOrder:
        """更新支付记录"""
