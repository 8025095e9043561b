"""Bid ORM — a vendor's priced proposal against a customer's plant request.

Invariants:
    - status ∈ BidStatus; written only through compare-and-set on (status, version)
    - selected_product_ids is a JSON list without duplicates (set semantics)
    - reference_images holds at most bid_max_reference_images URLs
    - version increments on every committed mutation

Design Decisions:
    - JSON columns for selection/images: the bid reads and writes them whole
    - Integer ids: bids and orders are addressed by serial ids in URLs
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from plantbid.db.base import Base


class Bid(Base):
    """Bid record — mutated only by the bid controller."""
    __tablename__ = "bids"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    vendor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    plant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    conversation_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vendor_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    selected_product_ids: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    reference_images: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
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
