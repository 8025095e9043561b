"""Order Schemas — status advance, cancellation and the order response shape."""

from datetime import datetime

from pydantic import Field, field_validator

from plantbid.core.domain_types import OrderStatus
from plantbid.schemas.base import CamelModel


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderCancel(CamelModel):
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reason cannot be empty or whitespace")
        return v


class OrderResponse(CamelModel):
    id: int
    order_id: str
    bid_id: int | None = None
    vendor_id: int
    customer_id: int | None = None
    price: int
    status: str
    conversation_id: int | None = None
    tracking_info: dict | None = None
    payment_ref: str | None = None
    reconcile_pending: bool = False
    version: int
    updated_at: datetime | None = None


class CancelResponse(CamelModel):
    """apiCallSuccess is False when the provider never confirmed the cancel."""
    success: bool
    api_call_success: bool
    order: OrderResponse
