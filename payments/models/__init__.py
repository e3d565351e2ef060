from payments.models.exchange_rate import ExchangeRate
from payments.models.reconciliation import PaymentReconciliationTask
from payments.models.transaction import Transaction
from payments.models.usage import UsageCounter
from payments.models.wallet import Currency, Wallet

__all__ = [
    "Currency",
    "ExchangeRate",
    "PaymentReconciliationTask",
    "Transaction",
    "UsageCounter",
    "Wallet",
]
