"""Bid Routes — vendor actions on a bid.

Invariants:
    - Routes only translate HTTP to BidStateController calls
    - Every response is a BidResponse (camelCase)
"""

from fastapi import APIRouter, Depends

from plantbid.api.dependencies import get_bid_controller
from plantbid.core.domain_types import BidStatus
from plantbid.schemas.bid import BidOffer, BidResponse, BidUpdate, ProductSelect
from plantbid.services.bid_controller import BidStateController

router = APIRouter(prefix="/api/v1/bids", tags=["bids"])


@router.get("/{bid_id}", response_model=BidResponse)
async def get_bid(
    bid_id: int, bids: BidStateController = Depends(get_bid_controller),
):
    return await bids.get(bid_id)


@router.patch("/{bid_id}", response_model=BidResponse)
async def update_bid(
    bid_id: int,
    body: BidUpdate,
    bids: BidStateController = Depends(get_bid_controller),
):
    """Apply only the fields present in the body."""
    return await bids.update(
        bid_id,
        selected_product_ids=body.selected_product_ids,
        price=body.price,
        vendor_message=body.vendor_message,
        reference_images=body.reference_images,
        status=BidStatus(body.status) if body.status else None,
    )


@router.post("/{bid_id}/products", response_model=BidResponse)
async def add_product(
    bid_id: int,
    body: ProductSelect,
    bids: BidStateController = Depends(get_bid_controller),
):
    return await bids.add_product(bid_id, body.product_id)


@router.delete("/{bid_id}/products/{product_id}", response_model=BidResponse)
async def remove_product(
    bid_id: int,
    product_id: int,
    bids: BidStateController = Depends(get_bid_controller),
):
    return await bids.remove_product(bid_id, product_id)


@router.put("/{bid_id}/offer", response_model=BidResponse)
async def set_offer(
    bid_id: int,
    body: BidOffer,
    bids: BidStateController = Depends(get_bid_controller),
):
    return await bids.set_price_and_message(
        bid_id, body.price, body.message, body.images,
    )


@router.post("/{bid_id}/finalize", response_model=BidResponse)
async def finalize_bid(
    bid_id: int, bids: BidStateController = Depends(get_bid_controller),
):
    return await bids.finalize(bid_id)
