import logging
import time

import requests
from django.conf import settings

from payments.domain.exceptions import (
    AIGatewayError,
    AIGatewayNotConfigured,
    AIGatewayPaymentRequired,
    AIGatewayRateLimited,
    AIGatewayTimeout,
)
from payments.integrations.http import (
    HttpClient,
    NetworkRequestFailed,
    RequestTimedOut,
    is_timeout,
)
from payments.integrations.retry import parse_retry_after_seconds
from payments.integrations.stream_decoder import iter_deltas

logger = logging.getLogger(__name__)

CHAT_SYSTEM_PROMPT = """You are PayChain AI Assistant, a helpful and knowledgeable expert in blockchain technology, cryptocurrency, and UPI payments.

Your role is to:
- Help users understand blockchain and cryptocurrency concepts
- Explain how PayChain bridges crypto and UPI payments
- Provide guidance on transactions, wallets, and security
- Answer questions about exchange rates and fees
- Guide users through the payment process

Key facts about PayChain:
- Transaction fee: 0.1%
- Supports instant crypto-to-UPI and UPI-to-crypto conversions
- Real-time exchange rates
- Supports ETH, BTC, USDT, and INR

Be concise, friendly, and helpful. Always prioritize user security and understanding."""

INSIGHTS_SYSTEM_PROMPT = (
    "You are a financial advisor AI analyzing user spending patterns. "
    "Provide actionable, personalized insights based on the data."
)


class CompletionStream:
    """Raw body chunks of a streamed completion, bounded by a total deadline."""

    def __init__(self, response, *, deadline, clock=time.monotonic):
        self.response = response
        self.deadline = deadline
        self.clock = clock

    def __iter__(self):
        try:
            for chunk in self.response.iter_content(chunk_size=None):
                if self.clock() > self.deadline:
                    raise AIGatewayTimeout("ai gateway stream exceeded its deadline")
                if chunk:
                    yield chunk
        except requests.RequestException as exc:
            if is_timeout(exc):
                raise AIGatewayTimeout("ai gateway stream timed out") from exc
            raise AIGatewayError("ai gateway stream interrupted") from exc
        finally:
            self.close()

    def close(self):
        self.response.close()


class AIGateway:
    def __init__(
        self,
        *,
        url=None,
        api_key=None,
        model=None,
        timeout=None,
        http_client=None,
        clock=time.monotonic,
    ):
        self.url = url or settings.AI_GATEWAY_URL
        self.api_key = settings.AI_GATEWAY_API_KEY if api_key is None else api_key
        self.model = model or settings.AI_GATEWAY_MODEL
        self.timeout = timeout or settings.AI_GATEWAY_TIMEOUT
        self.http_client = http_client or HttpClient(
            connect_timeout=settings.AI_GATEWAY_CONNECT_TIMEOUT,
            read_timeout=self.timeout,
            max_attempts=1,
        )
        self.clock = clock

    def open_stream(self, messages, *, system_prompt=CHAT_SYSTEM_PROMPT, user_ref=None):
        """Start a streamed completion; upstream errors raise before any byte is read."""
        if not self.api_key:
            raise AIGatewayNotConfigured("AI_GATEWAY_API_KEY is not configured")

        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "stream": True,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.info(
            "event=ai_gateway_request user_ref=%s message_count=%s",
            user_ref,
            len(messages),
        )

        deadline = self.clock() + self.timeout
        try:
            response = self.http_client.post_stream(
                self.url, json=payload, headers=headers
            )
        except RequestTimedOut as exc:
            logger.warning("event=ai_gateway_timeout user_ref=%s", user_ref)
            raise AIGatewayTimeout("ai gateway request timed out") from exc
        except NetworkRequestFailed as exc:
            logger.warning("event=ai_gateway_unreachable user_ref=%s", user_ref)
            raise AIGatewayError("ai gateway unreachable") from exc

        if response.status_code == 429:
            retry_after = parse_retry_after_seconds(response.headers.get("Retry-After"))
            response.close()
            logger.warning(
                "event=ai_gateway_rate_limited user_ref=%s retry_after_seconds=%s",
                user_ref,
                retry_after,
            )
            raise AIGatewayRateLimited(
                "ai gateway rate limited", retry_after_seconds=retry_after
            )
        if response.status_code == 402:
            response.close()
            logger.error("event=ai_gateway_payment_required user_ref=%s", user_ref)
            raise AIGatewayPaymentRequired("ai gateway payment required")
        if not 200 <= response.status_code < 300:
            body = response.text[:500]
            response.close()
            logger.error(
                "event=ai_gateway_error user_ref=%s http_status=%s body=%s",
                user_ref,
                response.status_code,
                body,
            )
            raise AIGatewayError(
                f"ai gateway returned http_{response.status_code}",
                status_code=response.status_code,
            )

        return CompletionStream(response, deadline=deadline, clock=self.clock)

    def complete_text(self, messages, *, system_prompt, user_ref=None):
        """Stream a completion and return the concatenated content."""
        stream = self.open_stream(
            messages, system_prompt=system_prompt, user_ref=user_ref
        )
        try:
            return "".join(iter_deltas(stream))
        finally:
            stream.close()
