"""Order Transition Rules — pure validation of fulfillment advances, cancellation and promotion.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - FORWARD_PATH is the single source of truth for forward order; only +1 steps allowed
    - cancelled is reachable only from CANCELLABLE_STATUSES; cancelled/completed are terminal
    - Promotion created -> paid only when the canonical PaymentStatus is SUCCESS

Design Decisions:
    - Payment state enters here already normalized (core/payment_status.py)
    - Tracking info shape kept from the storefront: company, trackingNumber,
      shippingDate, estimatedDeliveryDate, completedAt
"""

from datetime import datetime, timedelta

from plantbid.core.domain_types import OrderStatus, PaymentStatus
from plantbid.core.errors import ErrorContext, InvalidTransitionError


FORWARD_PATH: tuple[OrderStatus, ...] = (
    OrderStatus.CREATED,
    OrderStatus.PAID,
    OrderStatus.PREPARING,
    OrderStatus.SHIPPING,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
)
CANCELLABLE_STATUSES = frozenset({OrderStatus.CREATED, OrderStatus.PAID})
TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.COMPLETED})

SHIPPING_CARRIER = "Postal Parcel"
ESTIMATED_DELIVERY = timedelta(days=3)


def next_status(current: OrderStatus) -> OrderStatus | None:
    """The only status AdvanceStatus may move to, or None from terminal states."""
    if current not in FORWARD_PATH or current is OrderStatus.COMPLETED:
        return None
    return FORWARD_PATH[FORWARD_PATH.index(current) + 1]


def check_advance(
    current: OrderStatus, target: OrderStatus, order_token: str,
) -> None:
    """Raise unless target is exactly the next forward state."""
    ctx = ErrorContext(order_id=order_token)
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            current.value, target.value, "order is closed", ctx,
        )
    if target is OrderStatus.CANCELLED:
        raise InvalidTransitionError(
            current.value, target.value, "use the cancel operation", ctx,
        )
    expected = next_status(current)
    if target is not expected:
        if target in FORWARD_PATH and FORWARD_PATH.index(target) <= FORWARD_PATH.index(current):
            reason = "status cannot move backwards"
        else:
            reason = f"next allowed status is '{expected.value}'"
        raise InvalidTransitionError(current.value, target.value, reason, ctx)


def check_cancellable(
    current: OrderStatus, payment_status: PaymentStatus | None, order_token: str,
) -> None:
    """Cancel needs a pre-preparation order AND a successful payment to refund.

    Status is checked first so a preparing order fails the same way whatever
    the provider says.
    """
    ctx = ErrorContext(order_id=order_token)
    if current not in CANCELLABLE_STATUSES:
        raise InvalidTransitionError(
            current.value, OrderStatus.CANCELLED.value,
            "only created or paid orders can be cancelled", ctx,
        )
    if payment_status is not PaymentStatus.SUCCESS:
        raise InvalidTransitionError(
            current.value, OrderStatus.CANCELLED.value,
            "no successful payment exists for this order", ctx,
        )


def should_promote_to_paid(
    current: OrderStatus, payment_status: PaymentStatus | None,
) -> bool:
    return current is OrderStatus.CREATED and payment_status is PaymentStatus.SUCCESS


def should_mirror_cancellation(
    current: OrderStatus, payment_status: PaymentStatus | None,
) -> bool:
    """Provider shows the payment cancelled while we still hold it open."""
    return (
        current in CANCELLABLE_STATUSES
        and payment_status is PaymentStatus.CANCELLED
    )


def build_tracking_info(now: datetime, existing: dict | None = None) -> dict:
    """Tracking stamp written when an order enters shipping."""
    millis = str(int(now.timestamp() * 1000))
    return {
        **(existing or {}),
        "company": SHIPPING_CARRIER,
        "trackingNumber": f"TK-{millis[-8:]}",
        "shippingDate": now.isoformat(),
        "estimatedDeliveryDate": (now + ESTIMATED_DELIVERY).isoformat(),
    }


def stamp_completed(tracking_info: dict | None, now: datetime) -> dict:
    return {**(tracking_info or {}), "completedAt": now.isoformat()}
