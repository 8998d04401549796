"""Infrastructure models package exports."""
from .base import Base, metadata
from .payment import PaymentOrderModel
from .wallet import WalletModel, WalletTransactionModel

__all__ = [
    "Base",
    "metadata",
    "PaymentOrderModel",
    "WalletModel",
    "WalletTransactionModel",
]
