import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ExchangeRate",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "from_currency",
                    models.CharField(
                        choices=[
                            ("INR", "Indian Rupee"),
                            ("ETH", "Ether"),
                            ("BTC", "Bitcoin"),
                            ("USDT", "Tether"),
                        ],
                        max_length=8,
                    ),
                ),
                (
                    "to_currency",
                    models.CharField(
                        choices=[
                            ("INR", "Indian Rupee"),
                            ("ETH", "Ether"),
                            ("BTC", "Bitcoin"),
                            ("USDT", "Tether"),
                        ],
                        max_length=8,
                    ),
                ),
                ("rate", models.DecimalField(decimal_places=12, max_digits=30)),
                ("last_updated", models.DateTimeField()),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("from_currency", "to_currency"),
                        name="exchange_rate_pair_unique",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="UsageCounter",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("identity", models.CharField(max_length=150, unique=True)),
                ("request_count", models.PositiveIntegerField(default=0)),
                ("window_reset_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="Wallet",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "uuid",
                    models.UUIDField(default=uuid.uuid4, editable=False, unique=True),
                ),
                (
                    "currency",
                    models.CharField(
                        choices=[
                            ("INR", "Indian Rupee"),
                            ("ETH", "Ether"),
                            ("BTC", "Bitcoin"),
                            ("USDT", "Tether"),
                        ],
                        max_length=8,
                    ),
                ),
                ("is_primary", models.BooleanField(default=False)),
                (
                    "balance",
                    models.DecimalField(decimal_places=12, default=0, max_digits=30),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("balance__gte", 0)),
                        name="wallet_balance_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "reference",
                    models.CharField(editable=False, max_length=64, unique=True),
                ),
                ("from_wallet_id", models.UUIDField()),
                ("to_wallet_id", models.UUIDField(blank=True, null=True)),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("send", "Send"),
                            ("receive", "Receive"),
                            ("exchange", "Exchange"),
                        ],
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=8, max_digits=24)),
                (
                    "currency",
                    models.CharField(
                        choices=[
                            ("INR", "Indian Rupee"),
                            ("ETH", "Ether"),
                            ("BTC", "Bitcoin"),
                            ("USDT", "Tether"),
                        ],
                        max_length=8,
                    ),
                ),
                ("fee", models.DecimalField(decimal_places=12, max_digits=28)),
                (
                    "crypto_amount",
                    models.DecimalField(
                        blank=True, decimal_places=8, max_digits=24, null=True
                    ),
                ),
                (
                    "crypto_currency",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("INR", "Indian Rupee"),
                            ("ETH", "Ether"),
                            ("BTC", "Bitcoin"),
                            ("USDT", "Tether"),
                        ],
                        max_length=8,
                        null=True,
                    ),
                ),
                (
                    "recipient_name",
                    models.CharField(blank=True, max_length=100, null=True),
                ),
                (
                    "recipient_upi",
                    models.CharField(blank=True, max_length=100, null=True),
                ),
                ("failure_reason", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["user", "status", "created_at"],
                        name="txn_user_status_created_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="transaction_amount_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("fee__gte", 0)),
                        name="transaction_fee_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("completed_at__isnull", False), ("status", "completed")),
                            models.Q(
                                models.Q(("status", "completed"), _negated=True),
                                ("completed_at__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="transaction_completed_at_by_status",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("status", "failed"),
                            ("failure_reason__isnull", True),
                            _connector="OR",
                        ),
                        name="transaction_failure_reason_by_status",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentReconciliationTask",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("reason", models.CharField(max_length=128)),
                ("detail", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("RESOLVED", "Resolved")],
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "transaction",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reconciliation_task",
                        to="payments.transaction",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="recon_status_created_idx",
                    )
                ],
            },
        ),
    ]
