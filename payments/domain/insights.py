import json
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum
from django.utils import timezone

from payments.models import Transaction, Wallet

logger = logging.getLogger(__name__)

INSIGHT_TYPES = ("warning", "info", "success", "danger")
MAX_INSIGHTS = 5

_PROMPT_UNSAFE = re.compile(r"[^\w\s.,()-]")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class SpendingSummary:
    current_balance: Decimal
    currency: str
    weekly_spending: Decimal
    monthly_spending: Decimal
    daily_average: Decimal
    days_until_low: int
    predicted_balance: Decimal

    def as_dict(self):
        return {
            "currentBalance": str(self.current_balance),
            "currency": self.currency,
            "weeklySpending": str(self.weekly_spending),
            "monthlySpending": str(self.monthly_spending),
            "dailyAverage": str(self.daily_average),
            "daysUntilLow": self.days_until_low,
            "predictedBalance": str(self.predicted_balance),
        }


def summarize_spending(user, now=None):
    """Spending metrics over the caller's primary wallet, or ``None`` without one."""
    now = now or timezone.now()
    wallet = (
        Wallet.objects.filter(owner=user)
        .order_by("-is_primary", "created_at")
        .first()
    )
    if wallet is None:
        return None

    sends = Transaction.objects.filter(
        user=user,
        transaction_type=Transaction.Type.SEND,
    ).exclude(status=Transaction.Status.FAILED)

    def spent_since(days):
        total = sends.filter(created_at__gte=now - timedelta(days=days)).aggregate(
            total=Sum("amount")
        )["total"]
        return total or Decimal("0")

    weekly = spent_since(7)
    monthly = spent_since(30)
    daily_average = (monthly / 30).quantize(Decimal("0.01"))
    balance = Decimal(wallet.balance)
    days_until_low = int(balance // (daily_average or Decimal("1")))

    return SpendingSummary(
        current_balance=balance,
        currency=wallet.currency,
        weekly_spending=weekly,
        monthly_spending=monthly,
        daily_average=daily_average,
        days_until_low=days_until_low,
        predicted_balance=balance - daily_average * 7,
    )


def sanitize_for_prompt(value):
    text = re.sub(r"[\n\r\t]", " ", str(value))
    text = _PROMPT_UNSAFE.sub("", text)
    return text[:100].strip()


def build_insights_prompt(summary):
    s = sanitize_for_prompt
    return f"""Analyze this financial data and provide 3-4 brief, actionable insights:
- Current balance: {s(summary.current_balance)} {s(summary.currency)}
- Weekly spending: {s(summary.weekly_spending)}
- Monthly spending: {s(summary.monthly_spending)}
- Daily average: {s(summary.daily_average)}
- Days until low balance: {s(summary.days_until_low)}
- Predicted balance in 7 days: {s(summary.predicted_balance.quantize(Decimal("0.01")))}

Provide insights in this exact JSON format:
[
  {{
    "type": "warning|info|success|danger",
    "title": "Brief title",
    "description": "One sentence description",
    "prediction": "Specific prediction if applicable",
    "action": "One actionable recommendation"
  }}
]

Focus on: spending patterns, budget alerts, savings opportunities, and cash flow predictions."""


def rule_based_insights(summary):
    insights = []
    weekly_baseline = summary.monthly_spending / 4

    if summary.days_until_low < 7 and summary.daily_average > 0:
        insights.append(
            {
                "type": "danger",
                "title": "Low Balance Alert",
                "description": (
                    "At your current spending rate, your balance will run low in "
                    f"{summary.days_until_low} days"
                ),
                "prediction": (
                    "Predicted balance: "
                    f"{summary.predicted_balance.quantize(Decimal('0.01'))} {summary.currency}"
                ),
                "action": "Consider reducing non-essential spending or adding funds",
            }
        )

    if summary.weekly_spending > weekly_baseline * Decimal("1.5"):
        insights.append(
            {
                "type": "warning",
                "title": "Higher Than Usual Spending",
                "description": "This week's spending is 50% above your average",
                "action": "Review recent transactions to identify unusual expenses",
            }
        )

    if summary.weekly_spending < weekly_baseline * Decimal("0.5"):
        insights.append(
            {
                "type": "success",
                "title": "Great Spending Control",
                "description": "You're spending less than usual this week",
                "action": "Consider moving extra savings to a savings wallet",
            }
        )

    return insights


def parse_ai_insights(text):
    match = _JSON_ARRAY.search(text or "")
    if match is None:
        return []
    try:
        candidates = json.loads(match.group(0))
    except ValueError:
        logger.warning("event=insights_parse_failed length=%s", len(text))
        return []
    if not isinstance(candidates, list):
        return []

    insights = []
    for item in candidates:
        if not isinstance(item, dict):
            continue
        if item.get("type") not in INSIGHT_TYPES:
            continue
        if not isinstance(item.get("title"), str) or not isinstance(
            item.get("description"), str
        ):
            continue
        insights.append(
            {
                key: str(item[key])
                for key in ("type", "title", "description", "prediction", "action")
                if item.get(key) is not None
            }
        )
    return insights


def merge_insights(rule_based, ai_generated):
    return [*rule_based, *ai_generated][:MAX_INSIGHTS]
