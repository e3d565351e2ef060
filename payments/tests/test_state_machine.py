from django.test import SimpleTestCase

from payments.domain.exceptions import InvalidTransactionState, ProtocolOrderViolation
from payments.domain.state_machine import (
    PaymentProgress,
    Step,
    Transition,
    failure_reason_for,
    next_status,
)
from payments.models import Transaction


class TransitionTests(SimpleTestCase):
    def test_pending_can_complete_or_fail(self):
        self.assertEqual(
            next_status(Transaction.Status.PENDING, Transition.COMPLETE),
            Transaction.Status.COMPLETED,
        )
        for transition in Transition:
            if transition == Transition.COMPLETE:
                continue
            with self.subTest(transition=transition):
                self.assertEqual(
                    next_status(Transaction.Status.PENDING, transition),
                    Transaction.Status.FAILED,
                )

    def test_terminal_states_accept_no_transition(self):
        for status in (Transaction.Status.COMPLETED, Transaction.Status.FAILED):
            for transition in Transition:
                with self.subTest(status=status, transition=transition):
                    with self.assertRaises(InvalidTransactionState):
                        next_status(status, transition)

    def test_fixed_failure_reasons(self):
        self.assertEqual(
            failure_reason_for(Transition.FAIL_WALLET_NOT_FOUND), "wallet not found"
        )
        self.assertEqual(
            failure_reason_for(Transition.FAIL_INSUFFICIENT_BALANCE, detail="ignored"),
            "insufficient balance",
        )
        self.assertEqual(failure_reason_for(Transition.FAIL_WALLET_LOCKED), "wallet locked")
        self.assertEqual(
            failure_reason_for(Transition.FAIL_LEDGER_UNAVAILABLE, detail="ignored"),
            "ledger unavailable",
        )

    def test_free_form_failure_reasons_use_detail(self):
        self.assertEqual(
            failure_reason_for(Transition.FAIL_SETTLEMENT, detail="network down"),
            "network down",
        )
        self.assertEqual(failure_reason_for(Transition.FAIL_DEDUCTION), "deduction failed")
        self.assertEqual(failure_reason_for(Transition.FAIL_FINALIZE), "finalize failed")

    def test_complete_is_not_a_failure(self):
        with self.assertRaises(ValueError):
            failure_reason_for(Transition.COMPLETE)


class PaymentProgressTests(SimpleTestCase):
    def test_send_runs_all_five_steps_in_order(self):
        progress = PaymentProgress(Transaction.Type.SEND)
        for step in Step:
            progress.advance(step)

        self.assertTrue(progress.debited)
        self.assertEqual(progress.completed, list(Step))

    def test_deduct_cannot_precede_validate(self):
        progress = PaymentProgress(Transaction.Type.SEND)
        progress.advance(Step.CREATE)

        with self.assertRaises(ProtocolOrderViolation):
            progress.advance(Step.DEDUCT)
        self.assertFalse(progress.debited)

    def test_finalize_cannot_precede_confirm(self):
        progress = PaymentProgress(Transaction.Type.SEND)
        for step in (Step.CREATE, Step.VALIDATE, Step.DEDUCT):
            progress.advance(step)

        with self.assertRaises(ProtocolOrderViolation):
            progress.advance(Step.FINALIZE)

    def test_non_send_kinds_skip_balance_steps(self):
        progress = PaymentProgress(Transaction.Type.RECEIVE)
        progress.advance(Step.CREATE)

        with self.assertRaises(ProtocolOrderViolation):
            progress.advance(Step.VALIDATE)

        progress.advance(Step.CONFIRM)
        progress.advance(Step.FINALIZE)
        self.assertFalse(progress.debited)

    def test_no_step_after_finalize(self):
        progress = PaymentProgress(Transaction.Type.EXCHANGE)
        for step in progress.plan:
            progress.advance(step)

        with self.assertRaises(ProtocolOrderViolation):
            progress.advance(Step.CREATE)
