import uuid
from decimal import Decimal
from threading import Barrier, Thread
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError, OperationalError, close_old_connections, connections
from django.test import TestCase, TransactionTestCase

from payments.domain.exceptions import (
    CriticalInconsistency,
    InsufficientBalance,
    InvalidTransactionState,
    LedgerUnavailable,
    PaymentFailed,
    SettlementUnconfirmed,
    WalletLocked,
    WalletNotFound,
)
from payments.domain.services import PaymentRequest, PaymentService
from payments.integrations.ledger import DebitResult, LedgerStore, TransactionLog
from payments.integrations.settlement import SettlementGateway, SimulatedSettlementNetwork
from payments.models import PaymentReconciliationTask, Transaction, Wallet


def instant_settlement():
    return SettlementGateway(
        network=SimulatedSettlementNetwork(delay_seconds=0),
        sleep=lambda *_: None,
    )


def send_request(wallet, amount, **overrides):
    fields = {
        "amount": Decimal(amount),
        "currency": wallet.currency,
        "from_wallet_id": wallet.uuid,
        "transaction_type": Transaction.Type.SEND,
        "recipient_upi": "merchant@upi",
    }
    fields.update(overrides)
    return PaymentRequest(**fields)


class PaymentServiceTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="alice", password="secret"
        )
        self.wallet = Wallet.objects.create(
            owner=self.user, currency="INR", is_primary=True, balance=Decimal("1000")
        )
        self.service = PaymentService(settlement=instant_settlement())

    def test_send_completes_and_debits_amount_plus_fee(self):
        tx = self.service.process(self.user, send_request(self.wallet, "100"))

        self.wallet.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.COMPLETED)
        self.assertIsNotNone(tx.completed_at)
        self.assertIsNone(tx.failure_reason)
        self.assertEqual(tx.fee, Decimal("0.1"))
        self.assertTrue(tx.reference.startswith("txn_"))
        self.assertEqual(self.wallet.balance, Decimal("899.9"))

    def test_balance_equal_to_amount_plus_fee_is_accepted(self):
        Wallet.objects.filter(pk=self.wallet.pk).update(balance=Decimal("100.1"))

        tx = self.service.process(self.user, send_request(self.wallet, "100"))

        self.wallet.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.COMPLETED)
        self.assertEqual(self.wallet.balance, Decimal("0"))

    def test_insufficient_balance_fails_without_debit(self):
        Wallet.objects.filter(pk=self.wallet.pk).update(balance=Decimal("100"))

        with self.assertRaises(InsufficientBalance) as ctx:
            self.service.process(self.user, send_request(self.wallet, "100"))

        tx = ctx.exception.transaction
        tx.refresh_from_db()
        self.wallet.refresh_from_db()
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.code.value, "insufficient_balance")
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "insufficient balance")
        self.assertEqual(self.wallet.balance, Decimal("100"))

    def test_unknown_wallet_is_not_found(self):
        request = send_request(self.wallet, "10", from_wallet_id=uuid.uuid4())

        with self.assertRaises(WalletNotFound) as ctx:
            self.service.process(self.user, request)

        tx = ctx.exception.transaction
        tx.refresh_from_db()
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "wallet not found")

    def test_wallet_of_another_user_is_not_found(self):
        other = get_user_model().objects.create_user(username="bob", password="secret")

        with self.assertRaises(WalletNotFound):
            self.service.process(other, send_request(self.wallet, "10"))

        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, Decimal("1000"))

    def test_conditional_debit_rejects_balance_drained_after_validation(self):
        Wallet.objects.filter(pk=self.wallet.pk).update(balance=Decimal("50"))

        with patch.object(LedgerStore, "get_balance", return_value=Decimal("1000")):
            with self.assertRaises(InsufficientBalance) as ctx:
                self.service.process(self.user, send_request(self.wallet, "100"))

        tx = ctx.exception.transaction
        tx.refresh_from_db()
        self.wallet.refresh_from_db()
        self.assertEqual(tx.failure_reason, "insufficient balance")
        self.assertEqual(self.wallet.balance, Decimal("50"))

    def test_locked_wallet_fails_with_conflict(self):
        ledger = Mock()
        ledger.get_balance.return_value = Decimal("1000")
        ledger.conditional_debit.return_value = DebitResult.wallet_locked()
        service = PaymentService(ledger=ledger, settlement=instant_settlement())

        with self.assertRaises(WalletLocked) as ctx:
            service.process(self.user, send_request(self.wallet, "100"))

        tx = ctx.exception.transaction
        tx.refresh_from_db()
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "wallet locked")

    def test_finalize_failure_after_debit_is_a_critical_inconsistency(self):
        with patch.object(
            TransactionLog, "mark_completed", side_effect=DatabaseError("disk full")
        ):
            with self.assertRaises(CriticalInconsistency) as ctx:
                self.service.process(self.user, send_request(self.wallet, "100"))

        tx = Transaction.objects.get(user=self.user)
        self.wallet.refresh_from_db()
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("contact support", ctx.exception.user_message)
        self.assertNotIn("disk full", ctx.exception.user_message)
        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertEqual(self.wallet.balance, Decimal("899.9"))
        task = PaymentReconciliationTask.objects.get(transaction=tx)
        self.assertEqual(task.reason, "FINALIZE_FAILED_AFTER_DEBIT")
        self.assertEqual(task.status, PaymentReconciliationTask.Status.PENDING)

    def test_unconfirmed_settlement_after_debit_is_a_critical_inconsistency(self):
        settlement = Mock()
        settlement.confirm.side_effect = SettlementUnconfirmed("no confirmation")
        service = PaymentService(settlement=settlement)

        with self.assertRaises(CriticalInconsistency):
            service.process(self.user, send_request(self.wallet, "100"))

        tx = Transaction.objects.get(user=self.user)
        self.wallet.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertEqual(self.wallet.balance, Decimal("899.9"))
        self.assertEqual(
            PaymentReconciliationTask.objects.get(transaction=tx).reason,
            "SETTLEMENT_UNCONFIRMED_AFTER_DEBIT",
        )

    def test_unconfirmed_settlement_without_debit_marks_failed(self):
        settlement = Mock()
        settlement.confirm.side_effect = SettlementUnconfirmed("no confirmation")
        service = PaymentService(settlement=settlement)
        request = send_request(self.wallet, "5", transaction_type=Transaction.Type.RECEIVE)

        with self.assertRaises(PaymentFailed) as ctx:
            service.process(self.user, request)

        self.assertNotIsInstance(ctx.exception, CriticalInconsistency)
        tx = Transaction.objects.get(user=self.user)
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "no confirmation")
        self.assertFalse(PaymentReconciliationTask.objects.exists())

    def test_non_send_kinds_never_touch_the_ledger(self):
        ledger = Mock()
        service = PaymentService(ledger=ledger, settlement=instant_settlement())

        for kind in (Transaction.Type.RECEIVE, Transaction.Type.EXCHANGE):
            with self.subTest(kind=kind):
                tx = service.process(
                    self.user,
                    send_request(
                        self.wallet,
                        "25",
                        transaction_type=kind,
                        crypto_amount=Decimal("0.01"),
                        crypto_currency="ETH",
                    ),
                )
                self.assertEqual(tx.status, Transaction.Status.COMPLETED)

        ledger.get_balance.assert_not_called()
        ledger.conditional_debit.assert_not_called()

    def test_ledger_read_failure_marks_failed_without_debit(self):
        with patch.object(
            LedgerStore, "get_balance", side_effect=DatabaseError("disk I/O error")
        ):
            with self.assertRaises(LedgerUnavailable) as ctx:
                self.service.process(self.user, send_request(self.wallet, "100"))

        tx = Transaction.objects.get(user=self.user)
        self.wallet.refresh_from_db()
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.code.value, "internal_error")
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "ledger unavailable")
        self.assertEqual(self.wallet.balance, Decimal("1000"))
        self.assertFalse(PaymentReconciliationTask.objects.exists())

    def test_lock_contention_while_reading_balance_is_wallet_locked(self):
        with patch.object(
            LedgerStore,
            "get_balance",
            side_effect=OperationalError("database table is locked"),
        ):
            with self.assertRaises(WalletLocked):
                self.service.process(self.user, send_request(self.wallet, "100"))

        tx = Transaction.objects.get(user=self.user)
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "wallet locked")

    def test_debit_database_failure_marks_failed(self):
        with patch.object(
            LedgerStore, "conditional_debit", side_effect=DatabaseError("connection lost")
        ):
            with self.assertRaises(LedgerUnavailable):
                self.service.process(self.user, send_request(self.wallet, "100"))

        tx = Transaction.objects.get(user=self.user)
        self.wallet.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "ledger unavailable")
        self.assertEqual(self.wallet.balance, Decimal("1000"))

    def test_finalize_failure_without_debit_marks_failed(self):
        request = send_request(self.wallet, "5", transaction_type=Transaction.Type.RECEIVE)

        with patch.object(
            TransactionLog, "mark_completed", side_effect=DatabaseError("disk full")
        ):
            with self.assertRaises(PaymentFailed) as ctx:
                self.service.process(self.user, request)

        self.assertNotIsInstance(ctx.exception, CriticalInconsistency)
        tx = Transaction.objects.get(user=self.user)
        self.assertEqual(tx.status, Transaction.Status.FAILED)
        self.assertEqual(tx.failure_reason, "finalize failed")
        self.assertFalse(PaymentReconciliationTask.objects.exists())

    def test_completed_transaction_cannot_be_rewritten(self):
        tx = self.service.process(self.user, send_request(self.wallet, "10"))

        with self.assertRaises(InvalidTransactionState):
            TransactionLog().mark_completed(tx)

        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.COMPLETED)


class PaymentServiceConcurrencyTests(TransactionTestCase):
    def test_concurrent_sends_never_overdraw(self):
        user = get_user_model().objects.create_user(username="carol", password="secret")
        wallet = Wallet.objects.create(
            owner=user, currency="INR", is_primary=True, balance=Decimal("100")
        )
        both_validated = Barrier(2, timeout=10)
        refused = []
        unexpected = []

        class RacingLedger(LedgerStore):
            # Both payments see the full balance before either debits.
            def get_balance(self, wallet_id, *, owner_id):
                balance = super().get_balance(wallet_id, owner_id=owner_id)
                both_validated.wait()
                return balance

        def worker():
            close_old_connections()
            try:
                PaymentService(
                    ledger=RacingLedger(), settlement=instant_settlement()
                ).process(user, send_request(wallet, "80"))
            except PaymentFailed as exc:
                refused.append(exc)
            except Exception as exc:
                unexpected.append(exc)
            finally:
                connections.close_all()

        threads = [Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        wallet.refresh_from_db()
        transactions = list(Transaction.objects.filter(user=user).order_by("status"))

        self.assertEqual(unexpected, [])
        self.assertEqual(len(refused), 1)
        self.assertIsInstance(refused[0], (InsufficientBalance, WalletLocked))
        self.assertEqual(
            [tx.status for tx in transactions],
            [Transaction.Status.COMPLETED, Transaction.Status.FAILED],
        )
        self.assertIn(
            transactions[1].failure_reason, ("insufficient balance", "wallet locked")
        )
        self.assertFalse(
            Transaction.objects.filter(status=Transaction.Status.PENDING).exists()
        )
        self.assertEqual(wallet.balance, Decimal("19.92"))
