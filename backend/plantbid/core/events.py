"""Domain Events — immutable facts published after a status write commits.

Invariants:
    - Events are published only AFTER the owning transaction commits
    - Events carry ids and statuses only, never ORM objects
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class BidStatusChanged:
    bid_id: int
    vendor_id: int
    customer_id: int
    previous: str
    current: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: str
    vendor_id: int
    customer_id: int | None
    previous: str
    current: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


DomainEvent = BidStatusChanged | OrderStatusChanged
