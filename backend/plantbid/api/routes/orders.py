"""Order Routes — fulfillment advances, cancellation, and the reconciling order view.

Invariants:
    - GET reconciles with the payment provider at most once per view_session
    - Cancellation answers {success, apiCallSuccess, order}
"""

from fastapi import APIRouter, Depends, Query

from plantbid.api.dependencies import get_order_controller, get_order_view_reconciler
from plantbid.schemas.order import CancelResponse, OrderCancel, OrderResponse, OrderStatusUpdate
from plantbid.services.order_controller import OrderStateController
from plantbid.services.order_view_reconciler import OrderViewReconciler

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    view_session: str | None = Query(None, max_length=64),
    reconciler: OrderViewReconciler = Depends(get_order_view_reconciler),
):
    """Order detail. Passing view_session opts into reconciliation for that view."""
    return await reconciler.on_view(order_id, view_session)


@router.put("/{order_id}/status", response_model=OrderResponse)
async def set_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    orders: OrderStateController = Depends(get_order_controller),
):
    return await orders.advance_status(order_id, body.status)


@router.post("/{order_id}/cancel", response_model=CancelResponse)
async def cancel_order(
    order_id: str,
    body: OrderCancel,
    orders: OrderStateController = Depends(get_order_controller),
):
    result = await orders.cancel_payment(order_id, body.reason)
    return CancelResponse(
        success=result["success"],
        api_call_success=result["apiCallSuccess"],
        order=OrderResponse.model_validate(result["order"]),
    )
