"""Resilient Payment Client — wraps the PortOne V2 REST API with timeouts, retry and outcome classification.

Invariants:
    - Every call has a bounded timeout (payment_timeout_seconds)
    - Reads (get_payment): 5xx/connection errors retried with exponential backoff;
      404 means "no such payment" (None), other 4xx raise ProviderFailureError
    - Cancellation is sent ONCE with a fresh Idempotency-Key, never retried here
    - A timeout or unparseable body is UNKNOWN, never FAILURE
    - Raw status strings are normalized here, before anything leaves this module

Design Decisions:
    - httpx.AsyncClient over the SDK: the gateway is two endpoints
    - ±25% jitter on backoff so concurrent order views don't retry in lockstep
    - 5xx on cancel is UNKNOWN: the gateway may have processed it before failing
    - ConnectError on cancel is FAILURE: the request provably never left
"""

import asyncio
import logging
import random
import uuid
from datetime import datetime

import httpx

from plantbid.core.domain_types import PaymentStatus, ProviderOutcome
from plantbid.core.errors import (
    ErrorContext,
    ProviderAmbiguousError,
    ProviderFailureError,
    ProviderTimeoutError,
)
from plantbid.core.payment_status import normalize_payment_status
from plantbid.core.repository_protocols import ProviderCancelResult, ProviderPayment

logger = logging.getLogger(__name__)

_ALREADY_CANCELLED_TYPES = frozenset({
    "PAYMENT_ALREADY_CANCELLED", "ALREADY_CANCELLED",
})


def _parse_datetime(value) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_amount(value) -> int | None:
    if isinstance(value, dict):
        value = value.get("total")
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def parse_payment(order_id: str, body: object) -> ProviderPayment:
    """Turn a gateway payment body into a ProviderPayment.

    Accepts both the bare payment object and the {"payment": {...}} envelope.
    Raises ProviderAmbiguousError when no status can be read.
    """
    if isinstance(body, dict) and isinstance(body.get("payment"), dict):
        body = body["payment"]
    if not isinstance(body, dict) or not isinstance(body.get("status"), str):
        raise ProviderAmbiguousError(
            "get_payment", "payment body has no status",
            ErrorContext(order_id=order_id),
        )
    raw_status = body["status"]
    payment_key = (
        body.get("paymentKey") or body.get("id") or body.get("paymentId") or order_id
    )
    return ProviderPayment(
        order_id=order_id,
        payment_key=str(payment_key),
        status=normalize_payment_status(raw_status),
        raw_status=raw_status,
        amount=_parse_amount(body.get("amount")),
        approved_at=_parse_datetime(body.get("paidAt") or body.get("approvedAt")),
        cancelled_at=_parse_datetime(body.get("cancelledAt")),
    )


class ResilientPaymentClient:
    """PortOne V2 client with bounded timeouts and classified outcomes."""

    def __init__(
        self,
        base_url: str,
        api_secret: str,
        timeout_seconds: float = 5.0,
        max_retries: int = 2,
        base_delay_ms: int = 200,
        max_delay_ms: int = 2_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "Authorization": f"PortOne {api_secret}",
                "Accept": "application/json",
            },
            transport=transport,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def aclose(self) -> None:
        await self.client.aclose()

    # ─── Reads ───────────────────────────────────────────────────

    async def get_payment(self, order_id: str) -> ProviderPayment | None:
        """Fetch the provider's record for order_id; None when it has none."""
        context = ErrorContext(order_id=order_id)
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.get(f"/payments/{order_id}")
            except httpx.TimeoutException:
                raise ProviderTimeoutError("get_payment", context)
            except httpx.TransportError as e:
                await self._handle_transient_error(e, attempt, "get_payment", context)
                continue

            if response.status_code == 404:
                return None
            if response.status_code >= 500:
                await self._handle_transient_error(
                    f"HTTP {response.status_code}", attempt, "get_payment", context,
                )
                continue
            if response.status_code >= 400:
                raise ProviderFailureError(
                    "get_payment", _error_detail(response),
                    response.status_code, context,
                )
            try:
                body = response.json()
            except ValueError:
                raise ProviderAmbiguousError(
                    "get_payment", "response body is not JSON", context,
                )
            payment = parse_payment(order_id, body)
            logger.info(
                "Payment provider lookup",
                extra={
                    "order_id": order_id, "attempt": attempt + 1,
                    "provider_outcome": payment.status.value,
                },
            )
            return payment
        # the loop either returns or raises
        raise ProviderFailureError("get_payment", "retries exhausted", None, context)

    # ─── Cancellation ────────────────────────────────────────────

    async def cancel_payment(
        self, payment_key: str, reason: str,
    ) -> ProviderCancelResult:
        """Ask the gateway to cancel. Classifies instead of raising."""
        try:
            response = await self.client.post(
                f"/payments/{payment_key}/cancel",
                json={"reason": reason},
                headers={"Idempotency-Key": str(uuid.uuid4())},
            )
        except httpx.TimeoutException:
            return self._classified(
                payment_key, ProviderOutcome.UNKNOWN, "provider timed out",
            )
        except httpx.ConnectError as e:
            return self._classified(
                payment_key, ProviderOutcome.FAILURE, f"provider unreachable: {e}",
            )
        except httpx.TransportError as e:
            return self._classified(
                payment_key, ProviderOutcome.UNKNOWN, f"transport error: {e}",
            )

        if response.status_code >= 500:
            return self._classified(
                payment_key, ProviderOutcome.UNKNOWN,
                f"provider error HTTP {response.status_code}",
            )
        if response.status_code >= 400:
            if _error_type(response) in _ALREADY_CANCELLED_TYPES:
                return self._classified(
                    payment_key, ProviderOutcome.SUCCESS, "already cancelled",
                )
            return self._classified(
                payment_key, ProviderOutcome.FAILURE, _error_detail(response),
            )
        try:
            body = response.json()
        except ValueError:
            return self._classified(
                payment_key, ProviderOutcome.UNKNOWN, "response body is not JSON",
            )
        cancellation = body.get("cancellation") if isinstance(body, dict) else None
        if isinstance(cancellation, dict):
            status = normalize_payment_status(cancellation.get("status"))
            if status is PaymentStatus.FAILED:
                return self._classified(
                    payment_key, ProviderOutcome.FAILURE, "cancellation failed",
                )
        return self._classified(payment_key, ProviderOutcome.SUCCESS, "cancelled")

    # ─── Helpers ─────────────────────────────────────────────────

    def _classified(
        self, payment_key: str, outcome: ProviderOutcome, detail: str,
    ) -> ProviderCancelResult:
        log = logger.info if outcome is ProviderOutcome.SUCCESS else logger.warning
        log(
            f"Payment cancel {outcome.value}: {detail}",
            extra={"provider_outcome": outcome.value},
        )
        return ProviderCancelResult(outcome=outcome, detail=detail)

    async def _handle_transient_error(
        self, e: object, attempt: int, operation: str, context: ErrorContext,
    ) -> None:
        """Sleep before the next attempt, or raise once retries are spent."""
        if attempt >= self.max_retries:
            raise ProviderFailureError(
                operation,
                f"transient failure after {self.max_retries} retries: {e}",
                None, context,
            )
        delay = self._backoff(attempt)
        logger.warning(f"Payment provider transient error, retry after {delay}ms: {e}")
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


def _error_type(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        value = body.get("type") or body.get("code")
        return str(value).upper() if value else None
    return None


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("type") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


# Singleton (initialized on startup)
payment_client: ResilientPaymentClient | None = None


def init_payment_client(base_url: str, api_secret: str, **kwargs) -> ResilientPaymentClient:
    global payment_client
    payment_client = ResilientPaymentClient(base_url, api_secret, **kwargs)
    return payment_client


def get_payment_provider() -> ResilientPaymentClient:
    """FastAPI dependency for the payment gateway client."""
    if not payment_client:
        raise RuntimeError("Payment client not initialized")
    return payment_client
