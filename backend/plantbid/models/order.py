"""Order ORM — a purchase moving through fulfillment states.

Invariants:
    - order_id is the external token (unique); id is internal
    - status ∈ OrderStatus; written only through compare-and-set on (status, version)
    - reconcile_pending is set when a cancellation went out but the provider never confirmed it

Design Decisions:
    - buyer_info/recipient_info/tracking_info as JSON: captured at checkout, read whole
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, String, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from plantbid.db.base import Base


class Order(Base):
    """Order record — mutated only by the order controller."""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True,
    )
    bid_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vendor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    buyer_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    recipient_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="created",
    )
    conversation_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tracking_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payment_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reconcile_pending: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
