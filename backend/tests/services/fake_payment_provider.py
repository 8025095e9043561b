"""Fake Payment Provider — in-memory stand-in for the payment gateway.

Records every call so tests can assert what was (and was not) sent.
"""

from plantbid.core.domain_types import PaymentStatus, ProviderOutcome
from plantbid.core.repository_protocols import ProviderCancelResult, ProviderPayment


def provider_payment(
    order_id: str,
    status: PaymentStatus = PaymentStatus.SUCCESS,
    raw_status: str | None = None,
    payment_key: str | None = None,
    amount: int = 15000,
) -> ProviderPayment:
    return ProviderPayment(
        order_id=order_id,
        payment_key=payment_key or f"pay_{order_id}",
        status=status,
        raw_status=raw_status or status.value.upper(),
        amount=amount,
    )


class FakePaymentProvider:
    """Scriptable provider: payments by order id, one cancel outcome, optional error."""

    def __init__(self):
        self.payments: dict[str, ProviderPayment] = {}
        self.cancel_outcome = ProviderOutcome.SUCCESS
        self.get_error: Exception | None = None
        self.get_calls: list[str] = []
        self.cancel_calls: list[tuple[str, str]] = []

    async def get_payment(self, order_id: str) -> ProviderPayment | None:
        self.get_calls.append(order_id)
        if self.get_error:
            raise self.get_error
        return self.payments.get(order_id)

    async def cancel_payment(
        self, payment_key: str, reason: str,
    ) -> ProviderCancelResult:
        self.cancel_calls.append((payment_key, reason))
        return ProviderCancelResult(outcome=self.cancel_outcome, detail="fake")
