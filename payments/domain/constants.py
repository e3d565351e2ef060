from enum import Enum


class FailureCode(str, Enum):
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    WALLET_NOT_FOUND = "wallet_not_found"
    WALLET_LOCKED = "wallet_locked"
    INTERNAL_ERROR = "internal_error"


class FailureReason(str, Enum):
    """Reasons persisted on failed transactions."""

    WALLET_NOT_FOUND = "wallet not found"
    INSUFFICIENT_BALANCE = "insufficient balance"
    WALLET_LOCKED = "wallet locked"
    LEDGER_UNAVAILABLE = "ledger unavailable"


class ReconciliationReason(str, Enum):
    FINALIZE_FAILED = "FINALIZE_FAILED_AFTER_DEBIT"
    SETTLEMENT_UNCONFIRMED = "SETTLEMENT_UNCONFIRMED_AFTER_DEBIT"


RATE_LIMIT_CODE = "RATE_LIMIT_EXCEEDED"
REQUEST_TIMEOUT_CODE = "request_timeout"
