import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable


def full_jitter_delay(attempt, *, base_delay, max_delay):
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    if base_delay < 0 or max_delay < 0:
        raise ValueError("base_delay and max_delay must be >= 0")

    cap = min(max_delay, base_delay * (2 ** (attempt - 1)))
    return random.uniform(0, cap)


def parse_retry_after_seconds(value):
    """Read a Retry-After header given either as seconds or as an HTTP date."""
    if value is None or not str(value).strip():
        return None
    raw = str(value).strip()

    try:
        return max(0.0, float(raw))
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with full-jitter backoff between them.

    ``run`` retries when ``func`` raises one of ``retry_exceptions`` or when
    ``retry_result`` says the returned value is not final. The last attempt's
    exception propagates; its result is returned as-is for the caller to judge.
    """

    max_attempts: int
    base_delay: float = 0.0
    max_delay: float = 0.0
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")

    def delay_for(self, attempt):
        return full_jitter_delay(
            attempt, base_delay=self.base_delay, max_delay=self.max_delay
        )

    def run(self, func, *, retry_exceptions=(), retry_result=None, on_retry=None):
        for attempt in range(1, self.max_attempts + 1):
            final = attempt == self.max_attempts
            try:
                result = func()
            except retry_exceptions as exc:
                if final:
                    raise
                outcome = exc
            else:
                if final or retry_result is None or not retry_result(result):
                    return result
                outcome = result

            delay = self.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt=attempt, delay_seconds=delay, outcome=outcome)
            if delay > 0:
                self.sleep(delay)
