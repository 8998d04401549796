"""
Payment and wallet specific codes.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Gateway/Network errors (6xxxx)
    GATEWAY_ERROR = 60000
    GATEWAY_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    REFUND_FAILED = 60004

    # Lifecycle errors
    INVALID_STATE = 61000


class WalletCode(IntEnum):
    WALLET_LOCKED = 62000
    WALLET_INACTIVE = 62001
    INSUFFICIENT_BALANCE = 62002
    CONCURRENT_UPDATE = 62003


# Error codes recorded on a PaymentOrder (error_code column)
SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
GATEWAY_REPORTED_FAILURE = "GATEWAY_FAILURE"
