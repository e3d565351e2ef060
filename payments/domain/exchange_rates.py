import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from payments.models import ExchangeRate

logger = logging.getLogger(__name__)

# Reference table until a market data feed is wired in.
REFERENCE_RATES = (
    ("ETH", "INR", Decimal("245000.50")),
    ("BTC", "INR", Decimal("4850000.75")),
    ("USDT", "INR", Decimal("83.50")),
    ("INR", "ETH", Decimal("0.00000408")),
    ("INR", "BTC", Decimal("0.00000021")),
    ("INR", "USDT", Decimal("0.01198")),
)


def refresh_exchange_rates(now=None, rates=REFERENCE_RATES):
    now = now or timezone.now()
    refreshed = []
    with transaction.atomic():
        for from_currency, to_currency, rate in rates:
            record, _ = ExchangeRate.objects.update_or_create(
                from_currency=from_currency,
                to_currency=to_currency,
                defaults={"rate": rate, "last_updated": now},
            )
            refreshed.append(record)
    logger.info("event=exchange_rates_refreshed count=%s", len(refreshed))
    return refreshed
