from datetime import datetime, time, timedelta
from decimal import Decimal

from django.conf import settings
from django.utils import timezone

from payments.domain.exceptions import InvalidAmount


def validate_positive_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, (int, Decimal)):
        raise InvalidAmount("amount must be a positive decimal")

    amount = Decimal(amount)
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount("amount must be greater than zero")

    return amount


def calculate_fee(amount):
    """Fee is a flat share of the amount, independent of currency and kind."""
    return validate_positive_amount(amount) * settings.PAYMENT_FEE_RATE


def next_midnight(now):
    local_now = timezone.localtime(now)
    tomorrow = local_now.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=local_now.tzinfo)


def user_ref(user_id):
    return f"user_{str(user_id)[:8]}"
