"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - The payment gateway and event handlers are accessed only through these Protocols
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Provider results are plain dataclasses with an already-normalized PaymentStatus
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from plantbid.core.domain_types import PaymentStatus, ProviderOutcome
from plantbid.core.events import DomainEvent


@dataclass(frozen=True)
class ProviderPayment:
    """The provider's view of one payment."""
    order_id: str
    payment_key: str
    status: PaymentStatus
    raw_status: str
    amount: int | None = None
    approved_at: datetime | None = None
    cancelled_at: datetime | None = None


@dataclass(frozen=True)
class ProviderCancelResult:
    """Outcome of a cancel call.

    success: the provider (probably) cancelled — true for SUCCESS and UNKNOWN.
    api_call_success: the provider confirmed it.
    """
    outcome: ProviderOutcome
    detail: str = ""

    @property
    def success(self) -> bool:
        return self.outcome is not ProviderOutcome.FAILURE

    @property
    def api_call_success(self) -> bool:
        return self.outcome is ProviderOutcome.SUCCESS


class PaymentProvider(Protocol):
    """Contract for the external payment gateway — implemented by shell.

    get_payment raises ProviderTimeoutError / ProviderAmbiguousError /
    ProviderFailureError; cancel_payment never raises for gateway trouble,
    it classifies it.
    """
    async def get_payment(self, order_id: str) -> ProviderPayment | None: ...
    async def cancel_payment(
        self, payment_key: str, reason: str,
    ) -> ProviderCancelResult: ...


class EventHandler(Protocol):
    """A subscriber registered with the event dispatcher."""
    async def __call__(self, event: DomainEvent) -> None: ...
