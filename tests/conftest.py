"""Pytest bootstrap configuration.

Ensure environment variables are set before test collection and module
imports that depend on application settings, and provide in-memory
collaborators for the application services.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("RAZORPAY__KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY__KEY_SECRET", "test-key-secret")
os.environ.setdefault("RAZORPAY__WEBHOOK_SECRET", "test-webhook-secret")

import asyncio
import copy
import itertools
import json
from functools import partial
from typing import Dict, List, Optional

import pytest

from application.dtos.payments import (
    GatewayOrder,
    GatewayOrderRequest,
    GatewayRefund,
    GatewayRefundRequest,
    WebhookEvent,
)
from application.services.payment_service import PaymentApplicationService
from application.services.wallet_service import WalletApplicationService
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentOrder
from domain.payment.exceptions import GatewayException, PaymentNotFoundException
from domain.payment.repository import PaymentOrderRepository
from domain.wallet.entity import TransactionType, Wallet, WalletTransaction
from domain.wallet.exceptions import WalletConcurrencyException
from domain.wallet.repository import WalletAlreadyExistsError, WalletRepository
from infrastructure.locks import InMemoryCustomerLocks


SIGNING_SECRET = "test-key-secret"


class FakeStore:
    """Committed state shared by every unit of work of one test."""

    def __init__(self) -> None:
        self.payments: Dict[int, PaymentOrder] = {}
        self.wallets: Dict[str, Wallet] = {}
        self.transactions: List[WalletTransaction] = []
        self._ids = itertools.count(1)
        self.commits = 0

    def next_id(self) -> int:
        return next(self._ids)


class InMemoryPaymentOrderRepository(PaymentOrderRepository):
    def __init__(self, store: FakeStore, pending: Dict[int, PaymentOrder]):
        self._store = store
        self._pending = pending

    def _all(self) -> List[PaymentOrder]:
        merged = dict(self._store.payments)
        merged.update(self._pending)
        return list(merged.values())

    def _find(self, predicate) -> Optional[PaymentOrder]:
        matches = [p for p in self._all() if predicate(p)]
        if not matches:
            return None
        return copy.deepcopy(max(matches, key=lambda p: p.id))

    async def create(self, payment: PaymentOrder) -> PaymentOrder:
        payment = copy.deepcopy(payment)
        payment.id = self._store.next_id()
        self._pending[payment.id] = payment
        return copy.deepcopy(payment)

    async def get_by_id(self, payment_id, *, for_update=False):
        return self._find(lambda p: p.id == payment_id)

    async def get_by_external_order_id(self, external_order_id, *, for_update=False):
        return self._find(lambda p: p.external_order_id == external_order_id)

    async def get_by_external_payment_id(self, external_payment_id, *, for_update=False):
        return self._find(lambda p: p.external_payment_id == external_payment_id)

    async def get_by_order_id(self, order_id):
        return self._find(lambda p: p.order_id == order_id)

    async def list_by_customer(self, customer_id, skip=0, limit=100):
        rows = sorted((p for p in self._all() if p.customer_id == customer_id), key=lambda p: -p.id)
        return [copy.deepcopy(p) for p in rows[skip:skip + limit]]

    async def list_by_vendor(self, vendor_id, skip=0, limit=100):
        rows = sorted((p for p in self._all() if p.vendor_id == vendor_id), key=lambda p: -p.id)
        return [copy.deepcopy(p) for p in rows[skip:skip + limit]]

    async def update(self, payment: PaymentOrder) -> PaymentOrder:
        if payment.id not in self._pending and payment.id not in self._store.payments:
            raise PaymentNotFoundException(f"id={payment.id}")
        self._pending[payment.id] = copy.deepcopy(payment)
        return copy.deepcopy(payment)


class InMemoryWalletRepository(WalletRepository):
    def __init__(self, store: FakeStore, pending: Dict[str, Wallet], pending_txs: List[WalletTransaction]):
        self._store = store
        self._pending = pending
        self._pending_txs = pending_txs

    def _current(self, customer_id: str) -> Optional[Wallet]:
        return self._pending.get(customer_id) or self._store.wallets.get(customer_id)

    async def get_by_customer_id(self, customer_id, *, for_update=False):
        # yield so concurrent callers genuinely interleave
        await asyncio.sleep(0)
        wallet = self._current(customer_id)
        return copy.deepcopy(wallet) if wallet else None

    async def create(self, wallet: Wallet) -> Wallet:
        if self._current(wallet.customer_id) is not None:
            raise WalletAlreadyExistsError(wallet.customer_id)
        wallet = copy.deepcopy(wallet)
        wallet.id = self._store.next_id()
        self._pending[wallet.customer_id] = wallet
        return copy.deepcopy(wallet)

    async def update(self, wallet: Wallet, *, expected_version: int) -> Wallet:
        current = self._current(wallet.customer_id)
        if current is None or current.version != expected_version:
            raise WalletConcurrencyException(wallet.customer_id, expected_version)
        self._pending[wallet.customer_id] = copy.deepcopy(wallet)
        return wallet

    async def add_transaction(self, transaction: WalletTransaction) -> WalletTransaction:
        self._pending_txs.append(transaction)
        return transaction

    def _for_wallet(self, wallet_id: int) -> List[WalletTransaction]:
        rows = [t for t in self._store.transactions + self._pending_txs if t.wallet_id == wallet_id]
        return sorted(rows, key=lambda t: t.sequence, reverse=True)

    async def list_transactions(self, wallet_id, *, limit=None, tx_type: Optional[TransactionType] = None):
        rows = self._for_wallet(wallet_id)
        if tx_type is not None:
            rows = [t for t in rows if t.type == tx_type]
        return rows[:limit] if limit is not None else rows


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Buffers writes per record and publishes them to the store on commit."""

    def __init__(self, store: FakeStore, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self._store = store
        self._pending_payments: Dict[int, PaymentOrder] = {}
        self._pending_wallets: Dict[str, Wallet] = {}
        self._pending_txs: List[WalletTransaction] = []
        self.payment_order_repository = InMemoryPaymentOrderRepository(store, self._pending_payments)
        self.wallet_repository = InMemoryWalletRepository(store, self._pending_wallets, self._pending_txs)

    async def commit(self) -> None:
        self._store.payments.update(self._pending_payments)
        self._store.wallets.update(self._pending_wallets)
        seen = {(t.wallet_id, t.sequence) for t in self._store.transactions}
        for tx in self._pending_txs:
            assert (tx.wallet_id, tx.sequence) not in seen, "duplicate ledger sequence"
            seen.add((tx.wallet_id, tx.sequence))
        self._store.transactions.extend(self._pending_txs)
        self._store.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self._pending_payments.clear()
        self._pending_wallets.clear()
        self._pending_txs.clear()


class StubGateway:
    provider = "stub"
    key_id = "rzp_test_key"

    def __init__(self) -> None:
        self.orders: List[GatewayOrderRequest] = []
        self.refunds: List[GatewayRefundRequest] = []
        self.fail_with: Optional[GatewayException] = None
        self.closed = False

    async def create_order(self, req: GatewayOrderRequest) -> GatewayOrder:
        if self.fail_with is not None:
            raise self.fail_with
        self.orders.append(req)
        return GatewayOrder(
            remote_order_id=f"order_{len(self.orders)}",
            provider=self.provider,
            status="created",
            amount_minor=req.amount_minor,
            currency=req.currency,
            receipt=req.receipt,
        )

    async def refund(self, req: GatewayRefundRequest) -> GatewayRefund:
        if self.fail_with is not None:
            raise self.fail_with
        self.refunds.append(req)
        return GatewayRefund(
            refund_id=f"rfnd_{len(self.refunds)}",
            provider=self.provider,
            status="processed",
            amount_minor=req.amount_minor,
        )

    def parse_webhook(self, headers: dict, body: bytes) -> WebhookEvent:
        event = json.loads(body)
        return WebhookEvent(id=event["id"], type=event["event"], provider=self.provider, data=event["payload"])

    async def aclose(self) -> None:
        self.closed = True


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.fail = False

    async def set_payment_status(self, order_id: str, status: str, transaction_id: Optional[str] = None) -> None:
        self.calls.append((order_id, status, transaction_id))
        if self.fail:
            raise RuntimeError("order service down")

    async def aclose(self) -> None:
        return None


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def uow_factory(store):
    return partial(InMemoryUnitOfWork, store)


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def payment_service(uow_factory, gateway, notifier):
    return PaymentApplicationService(
        uow_factory=uow_factory,
        gateway=gateway,
        notifier=notifier,
        signing_secret=SIGNING_SECRET,
        receipt_prefix="ODOP",
    )


@pytest.fixture
def locks():
    return InMemoryCustomerLocks()


@pytest.fixture
def wallet_service(uow_factory, locks):
    return WalletApplicationService(uow_factory=uow_factory, locks=locks, default_currency="INR")
