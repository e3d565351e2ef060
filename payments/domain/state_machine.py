"""Transaction lifecycle and payment protocol ordering.

A transaction is created ``pending`` and leaves that state exactly once,
either through ``complete`` or through one of the named failure transitions.
Both target states are terminal.

``PaymentProgress`` records which protocol steps have run for one payment and
refuses out-of-order steps, so a debit can never precede the balance check and
completion can never precede the debit.
"""

from enum import Enum, IntEnum

from payments.domain.constants import FailureReason
from payments.domain.exceptions import InvalidTransactionState, ProtocolOrderViolation
from payments.models import Transaction


class Transition(str, Enum):
    COMPLETE = "complete"
    FAIL_WALLET_NOT_FOUND = "fail_wallet_not_found"
    FAIL_INSUFFICIENT_BALANCE = "fail_insufficient_balance"
    FAIL_WALLET_LOCKED = "fail_wallet_locked"
    FAIL_LEDGER_UNAVAILABLE = "fail_ledger_unavailable"
    FAIL_DEDUCTION = "fail_deduction"
    FAIL_SETTLEMENT = "fail_settlement"
    FAIL_FINALIZE = "fail_finalize"


_TRANSITIONS = {
    (Transaction.Status.PENDING, transition): (
        Transaction.Status.COMPLETED
        if transition == Transition.COMPLETE
        else Transaction.Status.FAILED
    )
    for transition in Transition
}

_FIXED_REASONS = {
    Transition.FAIL_WALLET_NOT_FOUND: FailureReason.WALLET_NOT_FOUND.value,
    Transition.FAIL_INSUFFICIENT_BALANCE: FailureReason.INSUFFICIENT_BALANCE.value,
    Transition.FAIL_WALLET_LOCKED: FailureReason.WALLET_LOCKED.value,
    Transition.FAIL_LEDGER_UNAVAILABLE: FailureReason.LEDGER_UNAVAILABLE.value,
}

_DEFAULT_DETAILS = {
    Transition.FAIL_DEDUCTION: "deduction failed",
    Transition.FAIL_SETTLEMENT: "settlement unconfirmed",
    Transition.FAIL_FINALIZE: "finalize failed",
}


def next_status(current, transition):
    try:
        return _TRANSITIONS[(Transaction.Status(current), Transition(transition))]
    except KeyError as exc:
        raise InvalidTransactionState(
            f"transition={Transition(transition).value} not allowed from status={current}"
        ) from exc


def failure_reason_for(transition, detail=None):
    transition = Transition(transition)
    if transition == Transition.COMPLETE:
        raise ValueError("complete is not a failure transition")
    if transition in _FIXED_REASONS:
        return _FIXED_REASONS[transition]
    return detail or _DEFAULT_DETAILS[transition]


class Step(IntEnum):
    CREATE = 1
    VALIDATE = 2
    DEDUCT = 3
    CONFIRM = 4
    FINALIZE = 5


_SEND_STEPS = (Step.CREATE, Step.VALIDATE, Step.DEDUCT, Step.CONFIRM, Step.FINALIZE)
_NON_DEBIT_STEPS = (Step.CREATE, Step.CONFIRM, Step.FINALIZE)


class PaymentProgress:
    def __init__(self, transaction_type):
        self.transaction_type = Transaction.Type(transaction_type)
        self.completed = []

    @property
    def plan(self):
        if self.transaction_type == Transaction.Type.SEND:
            return _SEND_STEPS
        return _NON_DEBIT_STEPS

    @property
    def debited(self):
        return Step.DEDUCT in self.completed

    def advance(self, step):
        step = Step(step)
        plan = self.plan
        if step not in plan:
            raise ProtocolOrderViolation(
                f"step={step.name} is not part of a {self.transaction_type} payment"
            )
        expected = plan[len(self.completed)] if len(self.completed) < len(plan) else None
        if step != expected:
            raise ProtocolOrderViolation(
                f"step={step.name} cannot run before "
                f"{expected.name if expected else 'nothing (payment finished)'}"
            )
        self.completed.append(step)
        return step
