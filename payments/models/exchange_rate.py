from django.db import models

from payments.models.wallet import Currency


class ExchangeRate(models.Model):
    from_currency = models.CharField(max_length=8, choices=Currency.choices)
    to_currency = models.CharField(max_length=8, choices=Currency.choices)
    rate = models.DecimalField(max_digits=30, decimal_places=12)
    last_updated = models.DateTimeField()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["from_currency", "to_currency"],
                name="exchange_rate_pair_unique",
            ),
        ]

    def __str__(self):
        return f"ExchangeRate<{self.from_currency}->{self.to_currency}:{self.rate}>"
