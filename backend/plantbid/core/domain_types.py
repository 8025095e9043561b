"""Domain Types — the status vocabularies shared by rules, controllers and wire formats.

Invariants:
    - All valid states encoded as Enums — no raw string matching outside this module's callers
    - PaymentStatus is the ONLY representation of provider payment state past the boundary

Design Decisions:
    - str Enums: serialize to JSON without custom encoders (transcript messages are JSON)
"""

from enum import Enum


# ─── Enums ───────────────────────────────────────────────────────

class BidStatus(str, Enum):
    """Bid lifecycle states — maps to DB `bids.status`."""
    PENDING = "pending"
    REVIEWING = "reviewing"
    BIDDED = "bidded"
    COMPLETED = "completed"


class OrderStatus(str, Enum):
    """Order fulfillment states — maps to DB `orders.status`."""
    CREATED = "created"
    PAID = "paid"
    PREPARING = "preparing"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MessageRole(str, Enum):
    """Transcript message author."""
    CUSTOMER = "customer"
    VENDOR = "vendor"
    SYSTEM = "system"


class TranscriptBidTag(str, Enum):
    """bidStatus tag carried by bid-related transcript messages."""
    REVIEWING = "reviewing"
    PENDING = "pending"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    """Canonical payment state, normalized once from provider strings."""
    READY = "ready"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"
    UNKNOWN = "unknown"


class ProviderOutcome(str, Enum):
    """Classification of a payment-provider call.

    UNKNOWN covers timeouts, transport drops and unparseable bodies — the
    provider may or may not have acted.
    """
    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"


class NotificationStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
