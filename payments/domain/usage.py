import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from payments.domain.policies import next_midnight
from payments.models import UsageCounter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    allowed: bool
    identity: str
    limit: int
    count: int
    reset_at: datetime

    @property
    def remaining(self):
        return max(0, self.limit - self.count)


class UsageLimiter:
    """Daily per-identity counter gating calls into the metered AI gateway.

    Every state change is a conditional UPDATE on the identity's row, so two
    concurrent requests cannot both take the last slot.
    """

    def admit(self, identity, limit, now=None):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        now = now or timezone.now()
        identity = str(identity)

        with transaction.atomic():
            counter = self._locked_counter(identity, now)
            if counter is None:
                return self._admitted(identity, limit, 1, next_midnight(now))

            reset_at = next_midnight(now)
            restarted = UsageCounter.objects.filter(
                pk=counter.pk,
                window_reset_at__lte=now,
            ).update(request_count=1, window_reset_at=reset_at, updated_at=now)
            if restarted:
                return self._admitted(identity, limit, 1, reset_at)

            incremented = UsageCounter.objects.filter(
                pk=counter.pk,
                window_reset_at__gt=now,
                request_count__lt=limit,
            ).update(request_count=F("request_count") + 1, updated_at=now)
            counter.refresh_from_db(fields=["request_count", "window_reset_at"])
            if incremented:
                return self._admitted(
                    identity, limit, counter.request_count, counter.window_reset_at
                )

        logger.info(
            "event=usage_limit_rejected identity=%s limit=%s reset_at=%s",
            identity[:8],
            limit,
            counter.window_reset_at.isoformat(),
        )
        return Admission(
            allowed=False,
            identity=identity,
            limit=limit,
            count=counter.request_count,
            reset_at=counter.window_reset_at,
        )

    @staticmethod
    def _locked_counter(identity, now):
        """Return the existing counter row, or ``None`` after creating a fresh one."""
        counter = UsageCounter.objects.select_for_update().filter(identity=identity).first()
        if counter is not None:
            return counter
        try:
            with transaction.atomic():
                UsageCounter.objects.create(
                    identity=identity,
                    request_count=1,
                    window_reset_at=next_midnight(now),
                )
            return None
        except IntegrityError:
            return UsageCounter.objects.select_for_update().get(identity=identity)

    @staticmethod
    def _admitted(identity, limit, count, reset_at):
        return Admission(
            allowed=True,
            identity=identity,
            limit=limit,
            count=count,
            reset_at=reset_at,
        )
