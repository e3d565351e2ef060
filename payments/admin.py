from django.contrib import admin

from payments.models import (
    ExchangeRate,
    PaymentReconciliationTask,
    Transaction,
    UsageCounter,
    Wallet,
)


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ("id", "uuid", "owner", "currency", "is_primary", "balance", "updated_at")
    list_filter = ("currency", "is_primary")
    search_fields = ("uuid", "owner__username")


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "reference",
        "user",
        "transaction_type",
        "status",
        "amount",
        "fee",
        "currency",
        "created_at",
        "completed_at",
    )
    list_filter = ("transaction_type", "status", "currency")
    search_fields = ("reference", "from_wallet_id", "recipient_upi")
    readonly_fields = ("reference", "failure_reason")


@admin.register(PaymentReconciliationTask)
class PaymentReconciliationTaskAdmin(admin.ModelAdmin):
    list_display = ("id", "transaction", "status", "reason", "created_at", "updated_at")
    list_filter = ("status", "reason")
    search_fields = ("transaction__reference", "reason")


@admin.register(UsageCounter)
class UsageCounterAdmin(admin.ModelAdmin):
    list_display = ("identity", "request_count", "window_reset_at", "updated_at")
    search_fields = ("identity",)


@admin.register(ExchangeRate)
class ExchangeRateAdmin(admin.ModelAdmin):
    list_display = ("from_currency", "to_currency", "rate", "last_updated")
