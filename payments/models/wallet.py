import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q


class Currency(models.TextChoices):
    INR = "INR", "Indian Rupee"
    ETH = "ETH", "Ether"
    BTC = "BTC", "Bitcoin"
    USDT = "USDT", "Tether"


class Wallet(models.Model):
    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallets",
    )
    currency = models.CharField(max_length=8, choices=Currency.choices)
    is_primary = models.BooleanField(default=False)
    balance = models.DecimalField(max_digits=30, decimal_places=12, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="wallet_balance_non_negative",
            ),
        ]

    def __str__(self):
        return f"Wallet<{self.uuid}:{self.currency}>"
