"""Buyer notifications — persists a Notification for every order status change."""

import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from plantbid.core.domain_types import NotificationStatus, OrderStatus
from plantbid.core.events import DomainEvent, OrderStatusChanged
from plantbid.models.notification import Notification

logger = logging.getLogger(__name__)

ORDER_NOTIFICATION_TEMPLATES = {
    OrderStatus.PAID: "Your payment was confirmed.",
    OrderStatus.PREPARING: "Your order is being prepared.",
    OrderStatus.SHIPPING: "Your order has shipped.",
    OrderStatus.DELIVERED: "Your order has been delivered.",
    OrderStatus.COMPLETED: "Your order is complete.",
    OrderStatus.CANCELLED: "Your order was cancelled.",
}


class BuyerNotificationHandler:
    """Event handler: writes one unread notification per order status change.

    Runs in its own session so it never touches the publisher's transaction.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def __call__(self, event: DomainEvent) -> None:
        if not isinstance(event, OrderStatusChanged) or event.customer_id is None:
            return
        message = ORDER_NOTIFICATION_TEMPLATES.get(OrderStatus(event.current))
        if not message:
            return
        async with self.session_factory() as db:
            db.add(Notification(
                user_id=event.customer_id,
                order_id=event.order_id,
                type="order",
                message=message,
                status=NotificationStatus.UNREAD.value,
            ))
            await db.commit()
        logger.debug(
            "Buyer notified of order status",
            extra={"order_id": event.order_id, "status_to": event.current},
        )
