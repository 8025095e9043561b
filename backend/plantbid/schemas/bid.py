"""Bid Schemas — vendor-facing bid requests and the bid response shape.

Invariants:
    - BidUpdate fields are all optional; only the fields sent are applied
    - status may only be requested as "bidded" (finalize); other statuses are derived
    - Price range and image count are checked by the domain rules, not here,
      so the limits live in one place (settings)
"""

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from plantbid.schemas.base import CamelModel


class BidUpdate(CamelModel):
    """Partial update: new selection, offer fields and/or finalize."""
    selected_product_ids: list[int] | None = None
    price: int | None = None
    vendor_message: str | None = Field(None, max_length=2000)
    reference_images: list[str] | None = None
    status: Literal["bidded"] | None = None

    @field_validator("selected_product_ids")
    @classmethod
    def dedupe_selection(cls, v: list[int] | None) -> list[int] | None:
        if v is None:
            return v
        return list(dict.fromkeys(v))


class ProductSelect(CamelModel):
    product_id: int


class BidOffer(CamelModel):
    """Price and message for SetPriceAndMessage."""
    price: int
    message: str | None = Field(None, max_length=2000)
    images: list[str] = Field(default_factory=list)


class BidResponse(CamelModel):
    id: int
    customer_id: int
    vendor_id: int
    plant_id: int | None = None
    conversation_id: int | None = None
    price: int | None = None
    vendor_message: str | None = None
    selected_product_ids: list[int]
    reference_images: list[str]
    status: str
    version: int
    updated_at: datetime | None = None
