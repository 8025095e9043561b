"""Order View Reconciler — runs payment reconciliation at most once per view session.

Invariants:
    - The ReconcileAttempt INSERT is the guard: a duplicate (order_id, view_session_id)
      means this view already reconciled, and the call is a no-op
    - Provider errors are logged and never fail the view
    - No polling: reconciliation happens only when an order view opens
"""

import logging

from sqlalchemy.exc import IntegrityError

from plantbid.core.errors import PaymentProviderError
from plantbid.models.order import Order
from plantbid.models.reconcile_attempt import ReconcileAttempt
from plantbid.services.order_controller import OrderStateController

logger = logging.getLogger(__name__)


class OrderViewReconciler:

    def __init__(self, orders: OrderStateController):
        self.orders = orders
        self.db = orders.db

    async def on_view(self, order_id: str, view_session_id: str | None) -> Order:
        """Return the order, reconciling first if this view session has not yet."""
        order = await self.orders.get(order_id)
        if not view_session_id:
            return order
        if not await self._claim(order_id, view_session_id):
            # the rollback expired the instance read above
            return await self.orders.get(order_id)

        try:
            return await self.orders.reconcile_from_payment(order_id)
        except PaymentProviderError as e:
            logger.warning(
                f"Reconciliation skipped, provider unavailable: {e.message}",
                extra={
                    "order_id": order_id,
                    "view_session": view_session_id,
                    "error_code": e.code,
                },
            )
            return await self.orders.get(order_id)

    async def _claim(self, order_id: str, view_session_id: str) -> bool:
        self.db.add(ReconcileAttempt(order_id=order_id, view_session_id=view_session_id))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.debug(
                "Order already reconciled in this view session",
                extra={"order_id": order_id, "view_session": view_session_id},
            )
            return False
        return True
