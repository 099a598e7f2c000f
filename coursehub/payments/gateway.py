"""Payment gateway port and adapters.

The engine only ever reads payment state from the gateway (``confirm``) or
opens a new intent at checkout (``create_intent``). Card handling stays on
the gateway side.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import replace
from decimal import Decimal
from typing import Any, Protocol
from uuid import uuid4

import httpx

from coursehub.config.settings import Settings, get_settings
from coursehub.core.errors import PaymentNotConfirmedError, UpstreamError
from coursehub.core.logging import get_logger
from coursehub.core.retry import RetryPolicy, retry_async

from .models import PaymentIntent, PaymentIntentStatus, to_minor_units


logger = get_logger(__name__)

SERVICE_NAME = "payment_gateway"


class PaymentGateway(Protocol):
    """Payment provider port."""

    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent: ...

    async def confirm(self, intent_id: str) -> PaymentIntent:
        """Fetch the current state of an intent.

        Raises:
            PaymentNotConfirmedError: The gateway does not know the intent
            UpstreamError: The gateway stayed unavailable after retries
        """
        ...


class GatewayServerError(Exception):
    """5xx from the gateway; retried."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Payment gateway returned {status_code}")


class HTTPPaymentGateway:
    """JSON/HTTP payment gateway client.

    Endpoints:
        POST /v1/payment_intents           create (amount in minor units)
        GET  /v1/payment_intents/{id}      read current state
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.policy = RetryPolicy.from_settings(
            self.settings, timeout=self.settings.payment_timeout_seconds
        )
        self._sleep = sleep
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.payment_gateway_url,
            timeout=self.settings.payment_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.payment_api_key:
            headers["Authorization"] = f"Bearer {self.settings.payment_api_key}"
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        json: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> httpx.Response:
        async def call() -> httpx.Response:
            response = await self._client.request(method, path, headers=headers, json=json)
            if response.status_code >= httpx.codes.INTERNAL_SERVER_ERROR:
                raise GatewayServerError(response.status_code)
            return response

        return await retry_async(
            call,
            service=SERVICE_NAME,
            policy=self.policy if retry else replace(self.policy, max_attempts=1),
            retry_on=(httpx.TransportError, GatewayServerError),
            sleep=self._sleep,
        )

    def _unexpected(self, response: httpx.Response, operation: str) -> UpstreamError:
        logger.error(
            "payment_gateway_request_failed",
            operation=operation,
            status_code=response.status_code,
            response_text=response.text[:500],
        )
        return UpstreamError(
            f"Payment gateway error: {response.status_code}",
            service=SERVICE_NAME,
            attempts=1,
        )

    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        """Open a new intent.

        Without an idempotency key a repeated POST could open a second
        chargeable intent, so the call is then attempted only once.
        """
        response = await self._request(
            "POST",
            "/v1/payment_intents",
            headers=self._headers(idempotency_key),
            json={
                "amount": to_minor_units(amount),
                "currency": currency,
                "metadata": metadata,
            },
            retry=idempotency_key is not None,
        )
        if not response.is_success:
            raise self._unexpected(response, "create_intent")

        intent = PaymentIntent.from_gateway(response.json())
        logger.info(
            "payment_intent_created",
            intent_id=intent.intent_id,
            amount=str(intent.amount),
            currency=intent.currency,
        )
        return intent

    async def confirm(self, intent_id: str) -> PaymentIntent:
        response = await self._request(
            "GET",
            f"/v1/payment_intents/{intent_id}",
            headers=self._headers(),
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise PaymentNotConfirmedError(f"Unknown payment intent {intent_id}")
        if not response.is_success:
            raise self._unexpected(response, "confirm")

        return PaymentIntent.from_gateway(response.json())


class InMemoryPaymentGateway:
    """Scriptable gateway for tests and local development.

    Like a real gateway, a repeated idempotency key returns the intent that
    key first created instead of opening a new one.
    """

    def __init__(self, currency: str = "gbp"):
        self.currency = currency
        self.intents: dict[str, PaymentIntent] = {}
        self.intents_by_key: dict[str, str] = {}
        self.confirm_calls = 0
        self.create_calls = 0

    def add_intent(self, intent: PaymentIntent) -> PaymentIntent:
        self.intents[intent.intent_id] = intent
        return intent

    def succeed(
        self,
        intent_id: str,
        amount: Decimal | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent:
        """Mark an intent succeeded, creating it if it does not exist."""
        existing = self.intents.get(intent_id)
        intent = PaymentIntent(
            intent_id=intent_id,
            amount=amount if amount is not None else (existing.amount if existing else Decimal(0)),
            currency=existing.currency if existing else self.currency,
            status=PaymentIntentStatus.SUCCEEDED,
            client_secret=existing.client_secret if existing else None,
            metadata=metadata or (existing.metadata if existing else {}),
        )
        return self.add_intent(intent)

    def fail(self, intent_id: str) -> PaymentIntent:
        existing = self.intents[intent_id]
        return self.add_intent(
            PaymentIntent(
                intent_id=existing.intent_id,
                amount=existing.amount,
                currency=existing.currency,
                status=PaymentIntentStatus.FAILED,
                client_secret=existing.client_secret,
                metadata=existing.metadata,
            )
        )

    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        self.create_calls += 1
        if idempotency_key in self.intents_by_key:
            return self.intents[self.intents_by_key[idempotency_key]]

        intent_id = f"pi_{uuid4().hex}"
        if idempotency_key:
            self.intents_by_key[idempotency_key] = intent_id
        return self.add_intent(
            PaymentIntent(
                intent_id=intent_id,
                amount=amount,
                currency=currency,
                status=PaymentIntentStatus.PENDING,
                client_secret=f"{intent_id}_secret",
                metadata=dict(metadata),
            )
        )

    async def confirm(self, intent_id: str) -> PaymentIntent:
        self.confirm_calls += 1
        intent = self.intents.get(intent_id)
        if intent is None:
            raise PaymentNotConfirmedError(f"Unknown payment intent {intent_id}")
        return intent
