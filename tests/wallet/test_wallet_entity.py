from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException, InvalidAmountException
from domain.wallet.entity import TransactionType, Wallet
from domain.wallet.exceptions import (
    InsufficientBalanceException,
    WalletInactiveException,
    WalletLockedException,
)
from domain.wallet.service import WalletDomainService


def _wallet() -> Wallet:
    wallet = Wallet.open("cust_1", "inr")
    wallet.id = 7
    return wallet


def test_open_wallet_is_empty_and_active():
    wallet = _wallet()
    assert wallet.balance == Decimal("0")
    assert wallet.currency == "INR"
    assert wallet.active and not wallet.locked
    assert wallet.version == 0


def test_credit_and_debit_append_sequenced_entries():
    wallet = _wallet()
    first = wallet.credit(Decimal("100"), "top up")
    second = wallet.debit(Decimal("30"), "order", reference_id="ord_1", reference_type="order")

    assert wallet.balance == Decimal("70")
    assert (first.sequence, second.sequence) == (1, 2)
    assert first.balance_after == Decimal("100")
    assert second.balance_after == Decimal("70")
    assert second.signed_amount == Decimal("-30")
    assert first.id.startswith("TXN-") and first.id != second.id
    assert second.wallet_id == 7


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), None, Decimal("NaN")])
def test_invalid_amounts(amount):
    wallet = _wallet()
    with pytest.raises(InvalidAmountException):
        wallet.credit(amount, None)
    with pytest.raises(InvalidAmountException):
        wallet.debit(amount, None)
    assert wallet.version == 0


@pytest.mark.parametrize("amount", [Decimal("0.004"), Decimal("10.005"), Decimal("1.001")])
def test_sub_unit_amounts_rejected(amount):
    wallet = _wallet()
    wallet.credit(Decimal("5"), None)
    with pytest.raises(InvalidAmountException):
        wallet.credit(amount, None)
    with pytest.raises(InvalidAmountException):
        wallet.debit(amount, None)
    assert wallet.balance == Decimal("5")
    assert wallet.version == 1


def test_trailing_zeros_within_precision_accepted():
    wallet = _wallet()
    entry = wallet.credit(Decimal("10.2500"), None)
    assert entry.amount == Decimal("10.25")
    assert wallet.balance == Decimal("10.25")


def test_zero_decimal_currency_rejects_fractions():
    wallet = Wallet.open("cust_jp", "jpy")
    with pytest.raises(InvalidAmountException):
        wallet.credit(Decimal("10.5"), None)
    wallet.credit(Decimal("10"), None)
    assert wallet.balance == Decimal("10")


def test_insufficient_balance_leaves_wallet_untouched():
    wallet = _wallet()
    wallet.credit(Decimal("10"), None)
    with pytest.raises(InsufficientBalanceException):
        wallet.debit(Decimal("10.01"), None)
    assert wallet.balance == Decimal("10")
    assert wallet.version == 1


def test_debit_entire_balance():
    wallet = _wallet()
    wallet.credit(Decimal("10"), None)
    wallet.debit(Decimal("10"), None)
    assert wallet.balance == Decimal("0")


def test_locked_wallet_rejects_all_entries():
    wallet = _wallet()
    wallet.credit(Decimal("50"), None)
    wallet.lock("fraud review")
    with pytest.raises(WalletLockedException) as excinfo:
        wallet.credit(Decimal("1"), None)
    assert excinfo.value.lock_reason == "fraud review"
    with pytest.raises(WalletLockedException):
        wallet.debit(Decimal("1"), None)

    wallet.unlock()
    assert wallet.lock_reason is None
    wallet.debit(Decimal("1"), None)


def test_inactive_wallet_rejects_entries():
    wallet = _wallet()
    wallet.deactivate()
    with pytest.raises(WalletInactiveException):
        wallet.credit(Decimal("1"), None)
    wallet.reactivate()
    wallet.credit(Decimal("1"), None)


def test_entry_type_must_match_direction():
    wallet = _wallet()
    with pytest.raises(DomainValidationException):
        wallet.credit(Decimal("1"), None, tx_type=TransactionType.WITHDRAWAL)
    with pytest.raises(DomainValidationException):
        wallet.debit(Decimal("1"), None, tx_type=TransactionType.CASHBACK)


def test_negative_balance_cannot_be_constructed():
    with pytest.raises(DomainValidationException):
        Wallet(id=None, customer_id="c", balance=Decimal("-1"), currency="INR")


def test_summary_and_replay():
    wallet = _wallet()
    entries = [
        wallet.credit(Decimal("100"), None),
        wallet.credit(Decimal("20"), None, tx_type=TransactionType.CASHBACK),
        wallet.credit(Decimal("15"), None, tx_type=TransactionType.REFUND),
        wallet.credit(Decimal("5"), None, tx_type=TransactionType.BONUS),
        wallet.debit(Decimal("40"), None),
        wallet.debit(Decimal("10"), None, tx_type=TransactionType.WITHDRAWAL),
    ]

    assert WalletDomainService.replay_balance(entries) == wallet.balance == Decimal("90")

    summary = WalletDomainService.summarize(wallet, entries)
    assert summary.exists
    assert summary.total_credits == Decimal("140")
    assert summary.total_debits == Decimal("50")
    assert summary.total_cashback == Decimal("20")
    assert summary.total_refunds == Decimal("15")
    assert summary.total_bonus == Decimal("5")
    assert summary.transaction_count == 6


def test_summary_of_missing_wallet():
    summary = WalletDomainService.summarize(None, [])
    assert not summary.exists
    assert summary.balance == Decimal("0")
