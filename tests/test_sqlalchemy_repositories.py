"""SQLAlchemy repositories and unit of work against an in-memory SQLite database."""
from decimal import Decimal
from functools import partial

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from application.dtos.payments import CreatePaymentOrder, RefundPayment, VerifyPayment
from application.services.payment_service import PaymentApplicationService
from application.services.wallet_service import WalletApplicationService
from domain.common.exceptions import InvalidAmountException
from domain.payment.entity import PaymentOrderStatus
from domain.payment.signature import compute_checkout_signature
from domain.wallet.entity import TransactionType, Wallet
from domain.wallet.exceptions import InsufficientBalanceException, WalletConcurrencyException
from domain.wallet.repository import WalletAlreadyExistsError
from infrastructure.locks import InMemoryCustomerLocks
from infrastructure.models import Base
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def _uow_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    return engine, partial(SQLAlchemyUnitOfWork, session_factory)


@pytest.mark.asyncio
async def test_wallet_ledger_roundtrip():
    engine, uow_factory = await _uow_factory()
    service = WalletApplicationService(uow_factory=uow_factory, locks=InMemoryCustomerLocks())
    try:
        await service.credit("cust_1", Decimal("100.00"), "Money added to wallet")
        await service.pay_with_wallet("cust_1", Decimal("30.50"), "ord_1")
        await service.add_cashback("cust_1", Decimal("3.05"), "ord_1")

        with pytest.raises(InsufficientBalanceException):
            await service.debit("cust_1", Decimal("1000"))

        balance = await service.get_balance("cust_1")
        assert balance.balance == Decimal("72.55")

        history = await service.transaction_history("cust_1")
        assert [t.sequence for t in history] == [3, 2, 1]
        assert history[1].reference_type == "order"
        assert history[0].type == TransactionType.CASHBACK

        summary = await service.summary("cust_1")
        assert summary.transaction_count == 3
        assert summary.total_credits == Decimal("103.05")
        assert summary.total_debits == Decimal("30.50")

        locked = await service.lock("cust_1", "review")
        assert locked.locked
        assert locked.version == 4
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_wallet_repository_enforces_uniqueness_and_versions():
    engine, uow_factory = await _uow_factory()
    try:
        async with uow_factory() as uow:
            created = await uow.wallet_repository.create(Wallet.open("cust_1", "INR"))
        assert created.id is not None

        with pytest.raises(WalletAlreadyExistsError):
            async with uow_factory() as uow:
                await uow.wallet_repository.create(Wallet.open("cust_1", "INR"))

        with pytest.raises(WalletConcurrencyException):
            async with uow_factory() as uow:
                wallet = await uow.wallet_repository.get_by_customer_id("cust_1", for_update=True)
                wallet.credit(Decimal("5"), None)
                await uow.wallet_repository.update(wallet, expected_version=99)

        async with uow_factory(readonly=True) as uow:
            wallet = await uow.wallet_repository.get_by_customer_id("cust_1")
            assert wallet.balance == Decimal("0")
            assert wallet.version == 0
            assert await uow.wallet_repository.list_transactions(wallet.id) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_amounts_finer_than_paise_never_reach_the_ledger():
    engine, uow_factory = await _uow_factory()
    service = WalletApplicationService(uow_factory=uow_factory, locks=InMemoryCustomerLocks())
    try:
        await service.credit("cust_1", Decimal("10.25"))
        with pytest.raises(InvalidAmountException):
            await service.credit("cust_1", Decimal("0.004"))

        balance = await service.get_balance("cust_1")
        assert balance.balance == Decimal("10.25")
        assert len(await service.transaction_history("cust_1")) == 1
    finally:
        await engine.dispose()


class _Gateway:
    provider = "stub"
    key_id = "rzp_test_key"

    async def create_order(self, req):
        from application.dtos.payments import GatewayOrder
        return GatewayOrder(remote_order_id=f"order_{req.receipt[-8:]}", provider=self.provider)

    async def refund(self, req):
        from application.dtos.payments import GatewayRefund
        return GatewayRefund(refund_id="rfnd_1", provider=self.provider, amount_minor=req.amount_minor)

    def parse_webhook(self, headers, body):
        raise NotImplementedError

    async def aclose(self):
        return None


class _Notifier:
    async def set_payment_status(self, order_id, status, transaction_id=None):
        return None

    async def aclose(self):
        return None


@pytest.mark.asyncio
async def test_payment_lifecycle_persists():
    engine, uow_factory = await _uow_factory()
    service = PaymentApplicationService(
        uow_factory=uow_factory,
        gateway=_Gateway(),
        notifier=_Notifier(),
        signing_secret="secret",
    )
    try:
        checkout = await service.create_order(
            CreatePaymentOrder(amount=Decimal("250.00"), customer_id="cust_1", vendor_id="vend_1", order_id="ord_1")
        )
        signature = compute_checkout_signature(checkout.external_order_id, "pay_1", "secret")
        result = await service.verify(
            VerifyPayment(external_order_id=checkout.external_order_id, external_payment_id="pay_1", signature=signature)
        )
        assert result.verified

        refunded = await service.refund(RefundPayment(external_payment_id="pay_1", refund_amount=Decimal("50")))
        assert refunded.status == PaymentOrderStatus.REFUNDED

        stored = await service.get_by_order_id("ord_1")
        assert stored.refund_amount == Decimal("50.00")
        assert stored.refund_id == "rfnd_1"
        assert stored.completed_at is not None
        assert [p.id for p in await service.list_by_vendor("vend_1")] == [checkout.id]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_rejected_verify_is_audited_without_claiming_the_payment_id():
    engine, uow_factory = await _uow_factory()
    service = PaymentApplicationService(
        uow_factory=uow_factory,
        gateway=_Gateway(),
        notifier=_Notifier(),
        signing_secret="secret",
    )
    try:
        genuine = await service.create_order(
            CreatePaymentOrder(amount=Decimal("100.00"), customer_id="cust_1", order_id="ord_a")
        )
        forged = await service.create_order(
            CreatePaymentOrder(amount=Decimal("100.00"), customer_id="cust_2", order_id="ord_b")
        )
        signature = compute_checkout_signature(genuine.external_order_id, "pay_X", "secret")
        await service.verify(
            VerifyPayment(external_order_id=genuine.external_order_id, external_payment_id="pay_X", signature=signature)
        )
        result = await service.verify(
            VerifyPayment(external_order_id=forged.external_order_id, external_payment_id="pay_X", signature="0" * 64)
        )
        assert not result.verified

        async with uow_factory(readonly=True) as uow:
            stored = await uow.payment_order_repository.get_by_id(forged.id)
            assert stored.status == PaymentOrderStatus.FAILED
            assert stored.external_payment_id is None
            assert (stored.rejected_payment_id, stored.rejected_signature) == ("pay_X", "0" * 64)
            owner = await uow.payment_order_repository.get_by_external_payment_id("pay_X")
            assert owner.id == genuine.id
    finally:
        await engine.dispose()
