import logging
import time
from dataclasses import dataclass

from django.conf import settings

from payments.domain.exceptions import SettlementUnconfirmed
from payments.integrations.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementAttempt:
    reference: str
    confirmed: bool
    settlement_ref: str | None = None


@dataclass(frozen=True)
class SettlementReceipt:
    reference: str
    attempts: int


class SimulatedSettlementNetwork:
    """Stand-in for the blockchain/UPI confirmation call.

    Confirms after a fixed delay; an attempt whose delay exceeds its timeout
    comes back unconfirmed. Submissions are keyed by the transaction
    reference, so resubmitting cannot settle twice.
    """

    def __init__(self, *, delay_seconds=None, sleep=time.sleep):
        self.delay_seconds = (
            settings.PAYMENT_SETTLEMENT_DELAY_SECONDS
            if delay_seconds is None
            else delay_seconds
        )
        self.sleep = sleep
        self._confirmed = set()

    def submit(self, *, reference, timeout):
        settlement_ref = f"stl_{reference}"
        if reference in self._confirmed:
            return SettlementAttempt(reference, True, settlement_ref)
        if self.delay_seconds > timeout:
            self.sleep(timeout)
            return SettlementAttempt(reference, False)
        if self.delay_seconds > 0:
            self.sleep(self.delay_seconds)
        self._confirmed.add(reference)
        return SettlementAttempt(reference, True, settlement_ref)


class SettlementGateway:
    def __init__(
        self,
        *,
        network=None,
        timeout=None,
        max_attempts=None,
        base_delay=None,
        max_delay=None,
        sleep=time.sleep,
    ):
        self.network = network or SimulatedSettlementNetwork(sleep=sleep)
        self.timeout = timeout or settings.PAYMENT_SETTLEMENT_TIMEOUT_SECONDS
        self.retry_policy = RetryPolicy(
            max_attempts=max_attempts or settings.PAYMENT_SETTLEMENT_MAX_ATTEMPTS,
            base_delay=(
                settings.PAYMENT_SETTLEMENT_RETRY_BASE_DELAY
                if base_delay is None
                else base_delay
            ),
            max_delay=(
                settings.PAYMENT_SETTLEMENT_RETRY_MAX_DELAY
                if max_delay is None
                else max_delay
            ),
            sleep=sleep,
        )

    def confirm(self, tx):
        attempts = 0

        def submit_once():
            nonlocal attempts
            attempts += 1
            return self.network.submit(reference=tx.reference, timeout=self.timeout)

        def log_retry(*, attempt, delay_seconds, outcome):
            logger.warning(
                "event=settlement_retry tx_ref=%s attempt=%s delay_ms=%s",
                tx.reference,
                attempt,
                int(delay_seconds * 1000),
            )

        result = self.retry_policy.run(
            submit_once,
            retry_result=lambda attempt: not attempt.confirmed,
            on_retry=log_retry,
        )
        if not result.confirmed:
            raise SettlementUnconfirmed(
                f"settlement for {tx.reference} unconfirmed after {attempts} attempts"
            )

        logger.info(
            "event=settlement_confirmed tx_ref=%s settlement_ref=%s attempts=%s",
            tx.reference,
            result.settlement_ref,
            attempts,
        )
        return SettlementReceipt(reference=result.settlement_ref, attempts=attempts)
