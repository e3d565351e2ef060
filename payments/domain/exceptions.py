from payments.domain.constants import FailureCode


class DomainError(Exception):
    """Base class for domain-layer errors."""


class InvalidAmount(DomainError):
    """Raised when amount is not a positive decimal."""


class InvalidTransactionState(DomainError):
    """Raised when transaction transition is not allowed."""


class ProtocolOrderViolation(DomainError):
    """Raised when a payment step runs before its prerequisites."""


class PaymentFailed(DomainError):
    """Base class for failures returned to the payment caller.

    ``code`` and ``status_code`` are safe to expose; the exception message is
    the internal reason and stays server-side.
    """

    code = FailureCode.INTERNAL_ERROR
    status_code = 500
    user_message = "Payment could not be processed. Please try again later."

    def __init__(self, message="", *, transaction=None):
        super().__init__(message)
        self.transaction = transaction


class WalletNotFound(PaymentFailed):
    code = FailureCode.WALLET_NOT_FOUND
    status_code = 404
    user_message = "Wallet not found."


class InsufficientBalance(PaymentFailed):
    code = FailureCode.INSUFFICIENT_BALANCE
    status_code = 400
    user_message = "Insufficient balance in your wallet."


class WalletLocked(PaymentFailed):
    code = FailureCode.WALLET_LOCKED
    status_code = 409
    user_message = "Another transaction is in progress for this wallet. Please wait."


class TransactionCreationFailed(PaymentFailed):
    """The pending record could not be persisted; nothing to compensate."""


class LedgerUnavailable(PaymentFailed):
    """The ledger could not be read or written; no balance was changed."""


class DeductionFailed(PaymentFailed):
    """The ledger refused the debit for a reason it did not classify."""


class CriticalInconsistency(PaymentFailed):
    """Money left the ledger but no completed transaction reflects it."""

    user_message = (
        "Your payment could not be confirmed. Please contact support "
        "before retrying."
    )


class SettlementUnconfirmed(DomainError):
    """Raised when external settlement did not confirm within its bounds."""


class AIGatewayError(DomainError):
    """Raised when the AI gateway returns an unusable response."""

    def __init__(self, message="", *, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class AIGatewayRateLimited(AIGatewayError):
    def __init__(self, message="", *, retry_after_seconds=None):
        super().__init__(message, status_code=429)
        self.retry_after_seconds = retry_after_seconds


class AIGatewayPaymentRequired(AIGatewayError):
    def __init__(self, message=""):
        super().__init__(message, status_code=402)


class AIGatewayTimeout(AIGatewayError):
    """Raised when the upstream call exceeds its time bound."""


class AIGatewayNotConfigured(AIGatewayError):
    """Raised when no gateway API key is configured."""
