from django.conf import settings
from django.db import models
from django.db.models import Q

from payments.models.wallet import Currency


class Transaction(models.Model):
    class Type(models.TextChoices):
        SEND = "send", "Send"
        RECEIVE = "receive", "Receive"
        EXCHANGE = "exchange", "Exchange"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    reference = models.CharField(max_length=64, unique=True, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    from_wallet_id = models.UUIDField()
    to_wallet_id = models.UUIDField(null=True, blank=True)
    transaction_type = models.CharField(max_length=16, choices=Type.choices)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    amount = models.DecimalField(max_digits=24, decimal_places=8)
    currency = models.CharField(max_length=8, choices=Currency.choices)
    fee = models.DecimalField(max_digits=28, decimal_places=12)
    crypto_amount = models.DecimalField(
        max_digits=24, decimal_places=8, null=True, blank=True
    )
    crypto_currency = models.CharField(
        max_length=8, choices=Currency.choices, null=True, blank=True
    )
    recipient_name = models.CharField(max_length=100, null=True, blank=True)
    recipient_upi = models.CharField(max_length=100, null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(
                fields=["user", "status", "created_at"],
                name="txn_user_status_created_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="transaction_amount_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(fee__gte=0),
                name="transaction_fee_non_negative",
            ),
            models.CheckConstraint(
                condition=(
                    Q(status="completed", completed_at__isnull=False)
                    | (~Q(status="completed") & Q(completed_at__isnull=True))
                ),
                name="transaction_completed_at_by_status",
            ),
            models.CheckConstraint(
                condition=Q(status="failed") | Q(failure_reason__isnull=True),
                name="transaction_failure_reason_by_status",
            ),
        ]

    @property
    def total_debit(self):
        return self.amount + self.fee

    def __str__(self):
        return f"Transaction<{self.reference}:{self.transaction_type}:{self.status}>"
