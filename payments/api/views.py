import logging

from django.conf import settings
from django.http import StreamingHttpResponse
from rest_framework import status as http_status
from rest_framework.permissions import IsAdminUser
from rest_framework.views import APIView

from payments.api.responses import (
    api_response,
    error_response,
    payment_response,
    rate_limit_response,
    validation_error_response,
)
from payments.api.serializers import (
    ChatRequestSerializer,
    ExchangeRateSerializer,
    PaymentRequestSerializer,
    TransactionFilterSerializer,
    TransactionSerializer,
    WalletSerializer,
)
from payments.domain.constants import REQUEST_TIMEOUT_CODE
from payments.domain.exceptions import (
    AIGatewayError,
    AIGatewayNotConfigured,
    AIGatewayPaymentRequired,
    AIGatewayRateLimited,
    AIGatewayTimeout,
    CriticalInconsistency,
    PaymentFailed,
)
from payments.domain.exchange_rates import refresh_exchange_rates
from payments.domain.insights import (
    build_insights_prompt,
    merge_insights,
    parse_ai_insights,
    rule_based_insights,
    summarize_spending,
)
from payments.domain.policies import user_ref
from payments.domain.services import PaymentService
from payments.domain.usage import UsageLimiter
from payments.integrations.ai_gateway import INSIGHTS_SYSTEM_PROMPT, AIGateway
from payments.integrations.stream_decoder import (
    encode_delta,
    encode_done,
    encode_event,
    iter_deltas,
)
from payments.models import ExchangeRate, Transaction, Wallet

logger = logging.getLogger(__name__)

_GATEWAY_ERRORS = (
    (
        AIGatewayTimeout,
        http_status.HTTP_408_REQUEST_TIMEOUT,
        REQUEST_TIMEOUT_CODE,
        "The AI service took too long to respond. Please try again.",
    ),
    (
        AIGatewayRateLimited,
        http_status.HTTP_429_TOO_MANY_REQUESTS,
        "AI_RATE_LIMITED",
        "Rate limits exceeded, please try again later.",
    ),
    (
        AIGatewayPaymentRequired,
        http_status.HTTP_402_PAYMENT_REQUIRED,
        "AI_PAYMENT_REQUIRED",
        "AI usage limit reached. Please contact support.",
    ),
    (
        AIGatewayNotConfigured,
        http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        "AI_GATEWAY_ERROR",
        "AI service is not configured.",
    ),
    (
        AIGatewayError,
        http_status.HTTP_502_BAD_GATEWAY,
        "AI_GATEWAY_ERROR",
        "AI gateway error. Please try again later.",
    ),
)


def _classify_gateway_error(exc):
    for error_class, status_code, code, message in _GATEWAY_ERRORS:
        if isinstance(exc, error_class):
            return status_code, code, message
    raise exc


def gateway_error_response(exc):
    status_code, code, message = _classify_gateway_error(exc)
    headers = None
    retry_after = getattr(exc, "retry_after_seconds", None)
    if retry_after is not None:
        headers = {"Retry-After": str(int(retry_after))}
    return error_response(
        error=message,
        code=code,
        status_code=status_code,
        headers=headers,
    )


def relay_completion(stream, *, owner_ref):
    """Re-emit decoded deltas as a normalised event stream ending in [DONE]."""
    emitted = 0
    try:
        for delta in iter_deltas(stream):
            emitted += 1
            yield encode_delta(delta)
    except AIGatewayError as exc:
        _, code, message = _classify_gateway_error(exc)
        logger.warning(
            "event=ai_chat_stream_aborted user_ref=%s code=%s deltas=%s",
            owner_ref,
            code,
            emitted,
        )
        yield encode_event({"error": message, "code": code})
    finally:
        stream.close()
    logger.info("event=ai_chat_stream_done user_ref=%s deltas=%s", owner_ref, emitted)
    yield encode_done()


class PaymentsAPIView(APIView):
    def get(self, request):
        filter_serializer = TransactionFilterSerializer(data=request.query_params)
        if not filter_serializer.is_valid():
            return validation_error_response(
                filter_serializer.errors, error="Invalid query parameters."
            )

        transactions = Transaction.objects.filter(
            user=request.user, **filter_serializer.validated_data
        ).order_by("-created_at")
        return api_response(
            status_code=http_status.HTTP_200_OK,
            count=transactions.count(),
            results=TransactionSerializer(transactions, many=True).data,
        )

    def post(self, request):
        serializer = PaymentRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            tx = PaymentService().process(request.user, serializer.to_payment_request())
        except CriticalInconsistency as exc:
            return payment_response(
                status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
                error=exc.user_message,
                code=exc.code.value,
            )
        except PaymentFailed as exc:
            if exc.status_code >= 500:
                logger.error(
                    "event=payment_internal_error user_ref=%s error=%s detail=%s",
                    user_ref(request.user.pk),
                    exc.__class__.__name__,
                    exc,
                )
            return payment_response(
                status_code=exc.status_code,
                error=exc.user_message,
                code=exc.code.value,
            )

        return payment_response(
            status_code=http_status.HTTP_200_OK,
            transaction=TransactionSerializer(tx).data,
        )


class WalletListAPIView(APIView):
    def get(self, request):
        wallets = Wallet.objects.filter(owner=request.user).order_by(
            "-is_primary", "created_at"
        )
        return api_response(
            status_code=http_status.HTTP_200_OK,
            results=WalletSerializer(wallets, many=True).data,
        )


class WalletDetailAPIView(APIView):
    def get(self, request, wallet_id):
        wallet = Wallet.objects.filter(uuid=wallet_id, owner=request.user).first()
        if wallet is None:
            return error_response(
                error="Wallet not found.",
                code="wallet_not_found",
                status_code=http_status.HTTP_404_NOT_FOUND,
            )

        recent_limit = 10
        recent_value = request.query_params.get("recent")
        if recent_value is not None:
            try:
                recent_limit = int(recent_value)
            except ValueError:
                recent_limit = 0
            if recent_limit < 1 or recent_limit > 100:
                return validation_error_response(
                    {"recent": ["recent must be an integer between 1 and 100"]},
                    error="Invalid query parameters.",
                )

        transactions = Transaction.objects.filter(
            user=request.user, from_wallet_id=wallet.uuid
        ).order_by("-created_at")[:recent_limit]
        return api_response(
            status_code=http_status.HTTP_200_OK,
            wallet=WalletSerializer(wallet).data,
            recent_transactions=TransactionSerializer(transactions, many=True).data,
        )


class AIChatAPIView(APIView):
    def post(self, request):
        serializer = ChatRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        owner_ref = user_ref(request.user.pk)
        admission = UsageLimiter().admit(
            request.user.pk, settings.AI_DAILY_REQUEST_LIMIT
        )
        if not admission.allowed:
            return rate_limit_response(admission)

        try:
            stream = AIGateway().open_stream(
                serializer.validated_data["messages"], user_ref=owner_ref
            )
        except AIGatewayError as exc:
            return gateway_error_response(exc)

        response = StreamingHttpResponse(
            relay_completion(stream, owner_ref=owner_ref),
            content_type="text/event-stream",
        )
        response["Cache-Control"] = "no-cache"
        response["X-Accel-Buffering"] = "no"
        return response


class FinancialInsightsAPIView(APIView):
    def post(self, request):
        summary = summarize_spending(request.user)
        if summary is None:
            return error_response(
                error="Wallet not found.",
                code="wallet_not_found",
                status_code=http_status.HTTP_404_NOT_FOUND,
            )

        admission = UsageLimiter().admit(
            request.user.pk, settings.AI_DAILY_REQUEST_LIMIT
        )
        if not admission.allowed:
            return rate_limit_response(admission)

        owner_ref = user_ref(request.user.pk)
        ai_error = None
        try:
            text = AIGateway().complete_text(
                [{"role": "user", "content": build_insights_prompt(summary)}],
                system_prompt=INSIGHTS_SYSTEM_PROMPT,
                user_ref=owner_ref,
            )
            ai_insights = parse_ai_insights(text)
        except AIGatewayError as exc:
            _, ai_error, _ = _classify_gateway_error(exc)
            logger.warning(
                "event=insights_ai_unavailable user_ref=%s code=%s",
                owner_ref,
                ai_error,
            )
            ai_insights = []

        insights = merge_insights(rule_based_insights(summary), ai_insights)
        logger.info(
            "event=insights_generated user_ref=%s count=%s ai_count=%s",
            owner_ref,
            len(insights),
            len(ai_insights),
        )
        return api_response(
            status_code=http_status.HTTP_200_OK,
            insights=insights,
            summary=summary.as_dict(),
            aiError=ai_error,
        )


class ExchangeRateListAPIView(APIView):
    def get(self, request):
        rates = ExchangeRate.objects.order_by("from_currency", "to_currency")
        return api_response(
            status_code=http_status.HTTP_200_OK,
            results=ExchangeRateSerializer(rates, many=True).data,
        )


class ExchangeRateRefreshAPIView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        rates = refresh_exchange_rates()
        return api_response(
            status_code=http_status.HTTP_200_OK,
            success=True,
            rates=ExchangeRateSerializer(rates, many=True).data,
        )
