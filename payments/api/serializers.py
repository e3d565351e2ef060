from decimal import Decimal

from django.conf import settings
from django.core.validators import RegexValidator
from rest_framework import serializers

from payments.domain.services import PaymentRequest
from payments.models import Currency, ExchangeRate, Transaction, Wallet

MAX_CHAT_MESSAGES = 50
MAX_MESSAGE_LENGTH = 2000
MAX_CONVERSATION_LENGTH = 50_000

_MIN_AMOUNT = Decimal("0.00000001")

upi_validator = RegexValidator(
    regex=r"^[\w.\-]{2,64}@[A-Za-z][A-Za-z0-9]{1,31}$",
    message="recipientUpi must look like name@bank",
)


class WalletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Wallet
        fields = ("uuid", "currency", "is_primary", "balance", "created_at", "updated_at")
        read_only_fields = fields


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = (
            "reference",
            "transaction_type",
            "status",
            "amount",
            "currency",
            "fee",
            "from_wallet_id",
            "to_wallet_id",
            "recipient_name",
            "recipient_upi",
            "crypto_amount",
            "crypto_currency",
            "created_at",
            "completed_at",
        )
        read_only_fields = fields


class TransactionFilterSerializer(serializers.Serializer):
    transaction_type = serializers.ChoiceField(
        choices=Transaction.Type.values,
        required=False,
    )
    status = serializers.ChoiceField(
        choices=Transaction.Status.values,
        required=False,
    )


class PaymentRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=24,
        decimal_places=8,
        min_value=_MIN_AMOUNT,
        max_value=settings.PAYMENT_MAX_AMOUNT,
    )
    currency = serializers.ChoiceField(choices=Currency.values)
    fromWalletId = serializers.UUIDField()
    toWalletId = serializers.UUIDField(required=False, allow_null=True)
    recipientUpi = serializers.CharField(
        required=False,
        allow_null=True,
        max_length=100,
        validators=[upi_validator],
    )
    recipientName = serializers.CharField(required=False, allow_null=True, max_length=100)
    transactionType = serializers.ChoiceField(choices=Transaction.Type.values)
    cryptoAmount = serializers.DecimalField(
        max_digits=24,
        decimal_places=8,
        min_value=_MIN_AMOUNT,
        required=False,
        allow_null=True,
    )
    cryptoCurrency = serializers.ChoiceField(
        choices=Currency.values,
        required=False,
        allow_null=True,
    )

    def to_payment_request(self):
        data = self.validated_data
        return PaymentRequest(
            amount=data["amount"],
            currency=data["currency"],
            from_wallet_id=data["fromWalletId"],
            transaction_type=data["transactionType"],
            to_wallet_id=data.get("toWalletId"),
            recipient_upi=data.get("recipientUpi"),
            recipient_name=data.get("recipientName"),
            crypto_amount=data.get("cryptoAmount"),
            crypto_currency=data.get("cryptoCurrency"),
        )


class ChatMessageSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=("user", "assistant"))
    content = serializers.CharField(max_length=MAX_MESSAGE_LENGTH, trim_whitespace=False)


class ChatRequestSerializer(serializers.Serializer):
    messages = serializers.ListField(
        child=ChatMessageSerializer(),
        min_length=1,
        max_length=MAX_CHAT_MESSAGES,
    )

    def validate_messages(self, value):
        total = sum(len(message["content"]) for message in value)
        if total > MAX_CONVERSATION_LENGTH:
            raise serializers.ValidationError(
                f"conversation exceeds {MAX_CONVERSATION_LENGTH} characters"
            )
        return [{"role": m["role"], "content": m["content"]} for m in value]


class ExchangeRateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExchangeRate
        fields = ("from_currency", "to_currency", "rate", "last_updated")
        read_only_fields = fields
