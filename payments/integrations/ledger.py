"""ORM-backed Ledger Store and Transaction Log.

The payment protocol only talks to these two classes, so tests can swap either
for a double. Every balance check re-reads the wallet row and every debit is a
single conditional ``UPDATE ... WHERE balance >= amount``; nothing is cached
between calls.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from django.db import OperationalError, connection, transaction
from django.db.models import F
from django.utils import timezone

from payments.domain.constants import FailureReason
from payments.domain.exceptions import InvalidTransactionState
from payments.domain.state_machine import Transition, failure_reason_for, next_status
from payments.integrations.references import generate_transaction_reference
from payments.models import PaymentReconciliationTask, Transaction, Wallet

logger = logging.getLogger(__name__)


class DebitOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    WALLET_LOCKED = "WALLET_LOCKED"
    WALLET_NOT_FOUND = "WALLET_NOT_FOUND"


@dataclass(frozen=True)
class DebitResult:
    outcome: DebitOutcome
    reason: str | None = None

    @property
    def success(self):
        return self.outcome == DebitOutcome.SUCCESS

    @classmethod
    def succeeded(cls):
        return cls(outcome=DebitOutcome.SUCCESS)

    @classmethod
    def insufficient_funds(cls):
        return cls(
            outcome=DebitOutcome.INSUFFICIENT_FUNDS,
            reason=FailureReason.INSUFFICIENT_BALANCE.value,
        )

    @classmethod
    def wallet_locked(cls):
        return cls(
            outcome=DebitOutcome.WALLET_LOCKED,
            reason=FailureReason.WALLET_LOCKED.value,
        )

    @classmethod
    def wallet_not_found(cls):
        return cls(
            outcome=DebitOutcome.WALLET_NOT_FOUND,
            reason=FailureReason.WALLET_NOT_FOUND.value,
        )


def _with_wallet_lock(queryset):
    if connection.features.has_select_for_update_nowait:
        return queryset.select_for_update(nowait=True)
    if connection.features.has_select_for_update:
        return queryset.select_for_update()
    return queryset


class LedgerStore:
    def get_balance(self, wallet_id, *, owner_id):
        """Return the current balance, or ``None`` when the caller has no such wallet."""
        return (
            Wallet.objects.filter(uuid=wallet_id, owner_id=owner_id)
            .values_list("balance", flat=True)
            .first()
        )

    def conditional_debit(self, wallet_id, amount, *, owner_id):
        try:
            with transaction.atomic():
                wallet = _with_wallet_lock(
                    Wallet.objects.filter(uuid=wallet_id, owner_id=owner_id)
                ).first()
                if wallet is None:
                    return DebitResult.wallet_not_found()

                debited = Wallet.objects.filter(
                    pk=wallet.pk,
                    balance__gte=amount,
                ).update(balance=F("balance") - amount, updated_at=timezone.now())
                if debited == 0:
                    return DebitResult.insufficient_funds()
        except OperationalError:
            logger.warning(
                "event=wallet_debit_lock_contention wallet_id=%s",
                wallet_id,
            )
            return DebitResult.wallet_locked()

        return DebitResult.succeeded()


class TransactionLog:
    def create(self, **fields):
        return Transaction.objects.create(
            reference=generate_transaction_reference(),
            status=Transaction.Status.PENDING,
            **fields,
        )

    def _apply(self, tx, transition, **changes):
        target = next_status(tx.status, transition)
        changes["status"] = target
        changes["updated_at"] = timezone.now()

        # Terminal rows never match, so a finished transaction cannot be rewritten.
        updated = Transaction.objects.filter(
            pk=tx.pk,
            status=Transaction.Status.PENDING,
        ).update(**changes)
        if updated == 0:
            raise InvalidTransactionState(
                f"transaction={tx.reference} is no longer {Transaction.Status.PENDING}"
            )

        tx.refresh_from_db()
        return tx

    def mark_completed(self, tx, *, now=None):
        return self._apply(
            tx,
            Transition.COMPLETE,
            completed_at=now or timezone.now(),
        )

    def mark_failed(self, tx, transition, *, detail=None):
        return self._apply(
            tx,
            transition,
            failure_reason=failure_reason_for(transition, detail),
        )

    def queue_reconciliation(self, tx, *, reason, detail=""):
        task, created = PaymentReconciliationTask.objects.get_or_create(
            transaction=tx,
            defaults={"reason": reason, "detail": detail},
        )
        return task, created
