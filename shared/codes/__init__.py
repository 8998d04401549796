"""
Business status codes shared by the domain, core and API layers.

`BusinessCode` covers the generic ranges; payment and wallet codes
(6xxxx) live in `shared.codes.payment_codes`.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # Request validation (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # Business rules (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006
    CONFLICT = 20007

    # Plain HTTP errors raised by the framework (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # Infrastructure (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003

    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
