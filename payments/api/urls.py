from django.urls import path

from payments.api.views import (
    AIChatAPIView,
    ExchangeRateListAPIView,
    ExchangeRateRefreshAPIView,
    FinancialInsightsAPIView,
    PaymentsAPIView,
    WalletDetailAPIView,
    WalletListAPIView,
)

urlpatterns = [
    path("payments/", PaymentsAPIView.as_view(), name="payments"),
    path("wallets/", WalletListAPIView.as_view(), name="wallet-list"),
    path("wallets/<uuid:wallet_id>/", WalletDetailAPIView.as_view(), name="wallet-detail"),
    path("ai/chat/", AIChatAPIView.as_view(), name="ai-chat"),
    path("ai/insights/", FinancialInsightsAPIView.as_view(), name="ai-insights"),
    path("exchange-rates/", ExchangeRateListAPIView.as_view(), name="exchange-rates"),
    path(
        "exchange-rates/refresh/",
        ExchangeRateRefreshAPIView.as_view(),
        name="exchange-rates-refresh",
    ),
]
