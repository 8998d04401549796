from .entity import Wallet, WalletTransaction, TransactionType, TransactionStatus
from .repository import WalletRepository

__all__ = [
    "Wallet",
    "WalletTransaction",
    "TransactionType",
    "TransactionStatus",
    "WalletRepository",
]
