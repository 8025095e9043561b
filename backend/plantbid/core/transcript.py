"""Transcript Messages — pure builders for every message a state transition emits.

Invariants:
    - All functions are PURE: `now` is injected, nothing reads the clock
    - Messages are plain dicts in the persisted wire shape (camelCase keys)
    - finalize_messages returns [detail?, completed] with completed strictly after detail
    - sort_transcript is stable: equal timestamps keep append order

Design Decisions:
    - Fixed templates keyed by target status: one message per transition, no free text
    - COMPLETION_OFFSET of 500 ms between detail and completed messages keeps the
      pair ordered even when a reader re-sorts by timestamp
"""

from datetime import datetime, timedelta, timezone

from plantbid.core.domain_types import MessageRole, OrderStatus, TranscriptBidTag


COMPLETION_OFFSET = timedelta(milliseconds=500)
DUPLICATE_WINDOW = timedelta(minutes=1)

ORDER_STATUS_TEMPLATES: dict[OrderStatus, str] = {
    OrderStatus.PREPARING: (
        "Your order has been confirmed and the vendor has started preparing it. "
        "Shipping will begin once preparation is complete."
    ),
    OrderStatus.SHIPPING: "Your order has shipped.",
    OrderStatus.DELIVERED: "Your order has been delivered.",
    OrderStatus.COMPLETED: "The order is complete. Thank you for your purchase.",
}

CANCELLED_TEMPLATE = "The order has been cancelled."


def format_timestamp(now: datetime) -> str:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.isoformat()


def parse_timestamp(value: str | None) -> datetime:
    """Parse a stored timestamp. Missing or unreadable values sort first."""
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ─── Bid messages ────────────────────────────────────────────────

def review_started_message(
    product_name: str, vendor_id: int, now: datetime,
) -> dict:
    """First product added: bid moved pending -> reviewing."""
    return {
        "role": MessageRole.VENDOR.value,
        "content": (
            f"A product was added and the bid is now under review. "
            f"Product: {product_name}"
        ),
        "timestamp": format_timestamp(now),
        "bidStatus": TranscriptBidTag.REVIEWING.value,
        "vendorId": vendor_id,
    }


def selection_cleared_message(vendor_id: int, now: datetime) -> dict:
    """Last product removed: bid moved reviewing -> pending."""
    return {
        "role": MessageRole.SYSTEM.value,
        "content": "All products were removed and the bid has been reset.",
        "timestamp": format_timestamp(now),
        "bidStatus": TranscriptBidTag.PENDING.value,
        "vendorId": vendor_id,
    }


def bid_detail_message(
    price: int,
    products: list[dict],
    vendor_message: str,
    images: list[str],
    vendor_id: int,
    now: datetime,
) -> dict:
    message = {
        "role": MessageRole.VENDOR.value,
        "content": vendor_message,
        "timestamp": format_timestamp(now),
        "price": price,
        "products": products,
        "images": list(images),
        "vendorId": vendor_id,
    }
    if images:
        message["imageUrl"] = images[0]
    return message


def bid_completed_message(vendor_id: int, now: datetime) -> dict:
    return {
        "role": MessageRole.VENDOR.value,
        "content": "The bid is complete. Please review it.",
        "timestamp": format_timestamp(now),
        "bidStatus": TranscriptBidTag.COMPLETED.value,
        "vendorId": vendor_id,
    }


def finalize_messages(
    price: int,
    products: list[dict],
    vendor_message: str | None,
    images: list[str],
    vendor_id: int,
    now: datetime,
) -> list[dict]:
    """Messages for a successful Finalize, in the order readers depend on.

    The detail message is skipped when the vendor wrote nothing.
    """
    messages = []
    if vendor_message and vendor_message.strip():
        messages.append(bid_detail_message(
            price, products, vendor_message, images, vendor_id, now,
        ))
    messages.append(bid_completed_message(vendor_id, now + COMPLETION_OFFSET))
    return messages


# ─── Order messages ──────────────────────────────────────────────

def order_status_message(
    status: OrderStatus, now: datetime, tracking_info: dict | None = None,
) -> dict:
    """System message for a forward fulfillment advance."""
    content = ORDER_STATUS_TEMPLATES[status]
    if status is OrderStatus.SHIPPING and tracking_info:
        content = (
            f"{content} Carrier: {tracking_info.get('company')}, "
            f"tracking number: {tracking_info.get('trackingNumber')}."
        )
    return {
        "role": MessageRole.SYSTEM.value,
        "content": content,
        "timestamp": format_timestamp(now),
        "orderStatus": status.value,
    }


def order_cancelled_message(reason: str, now: datetime) -> dict:
    return {
        "role": MessageRole.SYSTEM.value,
        "content": f"{CANCELLED_TEMPLATE} Reason: {reason}",
        "timestamp": format_timestamp(now),
        "orderStatus": OrderStatus.CANCELLED.value,
    }


# ─── Posted messages ─────────────────────────────────────────────

def posted_message(
    role: MessageRole,
    content: str,
    now: datetime,
    vendor_id: int | None = None,
    images: list[str] | None = None,
) -> dict:
    """A message typed by a customer or vendor in the chat."""
    message = {
        "role": role.value,
        "content": content,
        "timestamp": format_timestamp(now),
    }
    if vendor_id is not None:
        message["vendorId"] = vendor_id
    if images:
        message["images"] = list(images)
    return message


# ─── Reading ─────────────────────────────────────────────────────

def sort_transcript(messages: list[dict]) -> list[dict]:
    """Order by timestamp; sorted() is stable so ties keep append order."""
    return sorted(messages, key=lambda m: parse_timestamp(m.get("timestamp")))


def is_duplicate_message(
    existing: list[dict], candidate: dict, now: datetime,
) -> bool:
    """Same role, content and vendor posted within DUPLICATE_WINDOW."""
    for message in existing:
        if (
            message.get("role") == candidate.get("role")
            and message.get("content") == candidate.get("content")
            and message.get("vendorId") == candidate.get("vendorId")
        ):
            if now - parse_timestamp(message.get("timestamp")) < DUPLICATE_WINDOW:
                return True
    return False
