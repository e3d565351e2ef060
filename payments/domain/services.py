import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import DatabaseError, OperationalError

from payments.domain.constants import ReconciliationReason
from payments.domain.exceptions import (
    CriticalInconsistency,
    DeductionFailed,
    InsufficientBalance,
    InvalidTransactionState,
    LedgerUnavailable,
    PaymentFailed,
    SettlementUnconfirmed,
    TransactionCreationFailed,
    WalletLocked,
    WalletNotFound,
)
from payments.domain.policies import calculate_fee, user_ref
from payments.domain.state_machine import PaymentProgress, Step, Transition
from payments.integrations.ledger import DebitOutcome, LedgerStore, TransactionLog
from payments.integrations.settlement import SettlementGateway
from payments.models import Transaction

logger = logging.getLogger(__name__)

_DEBIT_FAILURES = {
    DebitOutcome.INSUFFICIENT_FUNDS: (
        Transition.FAIL_INSUFFICIENT_BALANCE,
        InsufficientBalance,
    ),
    DebitOutcome.WALLET_LOCKED: (Transition.FAIL_WALLET_LOCKED, WalletLocked),
    DebitOutcome.WALLET_NOT_FOUND: (Transition.FAIL_WALLET_NOT_FOUND, WalletNotFound),
}


@dataclass(frozen=True)
class PaymentRequest:
    amount: Decimal
    currency: str
    from_wallet_id: object
    transaction_type: str
    to_wallet_id: object = None
    recipient_upi: str | None = None
    recipient_name: str | None = None
    crypto_amount: Decimal | None = None
    crypto_currency: str | None = None


class PaymentService:
    """Runs one payment through create, validate, deduct, confirm and finalize.

    Failures before the debit move the transaction to ``failed`` and raise the
    matching ``PaymentFailed`` subclass. A failure after the debit is a
    ``CriticalInconsistency``: the transaction stays ``pending``, a
    reconciliation task is queued and nothing is re-credited.
    """

    def __init__(self, *, ledger=None, transaction_log=None, settlement=None):
        self.ledger = ledger or LedgerStore()
        self.transaction_log = transaction_log or TransactionLog()
        self.settlement = settlement or SettlementGateway()

    def process(self, user, request):
        progress = PaymentProgress(request.transaction_type)
        owner_ref = user_ref(user.pk)

        progress.advance(Step.CREATE)
        tx = self._create(user, request, owner_ref=owner_ref)

        if progress.transaction_type == Transaction.Type.SEND:
            progress.advance(Step.VALIDATE)
            self._validate_balance(tx, owner_id=user.pk)

            progress.advance(Step.DEDUCT)
            self._deduct(tx, owner_id=user.pk)

        progress.advance(Step.CONFIRM)
        self._confirm(tx, progress)

        progress.advance(Step.FINALIZE)
        return self._finalize(tx, progress)

    def _create(self, user, request, *, owner_ref):
        fee = calculate_fee(request.amount)
        try:
            tx = self.transaction_log.create(
                user=user,
                from_wallet_id=request.from_wallet_id,
                to_wallet_id=request.to_wallet_id,
                transaction_type=request.transaction_type,
                amount=request.amount,
                currency=request.currency,
                fee=fee,
                crypto_amount=request.crypto_amount,
                crypto_currency=request.crypto_currency,
                recipient_name=request.recipient_name,
                recipient_upi=request.recipient_upi,
            )
        except DatabaseError as exc:
            logger.exception(
                "event=payment_create_failed user_ref=%s transaction_type=%s",
                owner_ref,
                request.transaction_type,
            )
            raise TransactionCreationFailed(
                f"could not persist pending transaction: {exc.__class__.__name__}"
            ) from exc

        logger.info(
            "event=payment_created tx_ref=%s user_ref=%s transaction_type=%s currency=%s",
            tx.reference,
            owner_ref,
            tx.transaction_type,
            tx.currency,
        )
        return tx

    def _ledger_call(self, tx, step, call, *args, **kwargs):
        """Run a ledger read or debit; a database failure there moves nothing."""
        try:
            return call(*args, **kwargs)
        except OperationalError as exc:
            logger.warning(
                "event=payment_ledger_contention tx_ref=%s step=%s error=%s",
                tx.reference,
                step,
                exc.__class__.__name__,
            )
            self._fail(tx, Transition.FAIL_WALLET_LOCKED)
            raise WalletLocked(
                f"ledger contention during {step} for tx={tx.reference}",
                transaction=tx,
            ) from exc
        except DatabaseError as exc:
            logger.exception(
                "event=payment_ledger_unavailable tx_ref=%s step=%s",
                tx.reference,
                step,
            )
            self._fail(tx, Transition.FAIL_LEDGER_UNAVAILABLE)
            raise LedgerUnavailable(
                f"ledger unavailable during {step} for tx={tx.reference}",
                transaction=tx,
            ) from exc

    def _validate_balance(self, tx, *, owner_id):
        balance = self._ledger_call(
            tx, "validate", self.ledger.get_balance, tx.from_wallet_id, owner_id=owner_id
        )
        if balance is None:
            self._fail(tx, Transition.FAIL_WALLET_NOT_FOUND)
            raise WalletNotFound(
                f"wallet={tx.from_wallet_id} not found", transaction=tx
            )
        if balance < tx.total_debit:
            self._fail(tx, Transition.FAIL_INSUFFICIENT_BALANCE)
            raise InsufficientBalance(
                f"balance below {tx.total_debit} for tx={tx.reference}",
                transaction=tx,
            )

    def _deduct(self, tx, *, owner_id):
        result = self._ledger_call(
            tx,
            "deduct",
            self.ledger.conditional_debit,
            tx.from_wallet_id,
            tx.total_debit,
            owner_id=owner_id,
        )
        if result.success:
            logger.info("event=payment_debited tx_ref=%s", tx.reference)
            return

        transition, error_class = _DEBIT_FAILURES.get(
            result.outcome, (Transition.FAIL_DEDUCTION, DeductionFailed)
        )
        self._fail(tx, transition, detail=result.reason)
        raise error_class(
            f"debit refused for tx={tx.reference}: {result.reason}", transaction=tx
        )

    def _confirm(self, tx, progress):
        try:
            self.settlement.confirm(tx)
        except SettlementUnconfirmed as exc:
            if progress.debited:
                self._report_inconsistency(
                    tx, ReconciliationReason.SETTLEMENT_UNCONFIRMED, exc
                )
            self._fail(tx, Transition.FAIL_SETTLEMENT, detail=str(exc))
            raise PaymentFailed(str(exc), transaction=tx) from exc

    def _finalize(self, tx, progress):
        try:
            tx = self.transaction_log.mark_completed(tx)
        except (DatabaseError, InvalidTransactionState) as exc:
            if progress.debited:
                self._report_inconsistency(tx, ReconciliationReason.FINALIZE_FAILED, exc)
            logger.exception("event=payment_finalize_failed tx_ref=%s", tx.reference)
            self._fail(tx, Transition.FAIL_FINALIZE)
            raise PaymentFailed(
                f"finalize failed for tx={tx.reference}", transaction=tx
            ) from exc

        logger.info("event=payment_completed tx_ref=%s", tx.reference)
        return tx

    def _fail(self, tx, transition, *, detail=None):
        try:
            self.transaction_log.mark_failed(tx, transition, detail=detail)
        except (DatabaseError, InvalidTransactionState):
            logger.exception(
                "event=payment_mark_failed_error tx_ref=%s transition=%s",
                tx.reference,
                transition.value,
            )
            return
        logger.info(
            "event=payment_failed tx_ref=%s transition=%s",
            tx.reference,
            transition.value,
        )

    def _report_inconsistency(self, tx, reason, exc):
        logger.critical(
            "event=payment_critical_inconsistency tx_ref=%s reason=%s error=%s",
            tx.reference,
            reason.value,
            exc.__class__.__name__,
        )
        try:
            self.transaction_log.queue_reconciliation(
                tx, reason=reason.value, detail=str(exc)
            )
        except DatabaseError:
            logger.exception(
                "event=reconciliation_queue_failed tx_ref=%s reason=%s",
                tx.reference,
                reason.value,
            )
        raise CriticalInconsistency(
            f"debit applied but tx={tx.reference} not completed: {reason.value}",
            transaction=tx,
        ) from exc
