"""Request-scoped wiring — builds controllers over the request's DB session.

Invariants:
    - One AsyncSession per request, shared by every controller built for it
    - The event dispatcher is app-owned (app.state), never module-global
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from plantbid.config import get_settings
from plantbid.core.repository_protocols import PaymentProvider
from plantbid.infrastructure.database import get_db
from plantbid.infrastructure.event_dispatcher import EventDispatcher
from plantbid.infrastructure.payment_client import get_payment_provider
from plantbid.services.bid_controller import BidStateController
from plantbid.services.order_controller import OrderStateController
from plantbid.services.order_view_reconciler import OrderViewReconciler
from plantbid.services.transcript_store import TranscriptStore


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


def get_transcript_store(db: AsyncSession = Depends(get_db)) -> TranscriptStore:
    return TranscriptStore(
        db, max_attempts=get_settings().transcript_append_max_attempts,
    )


def get_bid_controller(
    db: AsyncSession = Depends(get_db),
    transcript: TranscriptStore = Depends(get_transcript_store),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> BidStateController:
    return BidStateController(db, transcript, dispatcher)


def get_order_controller(
    db: AsyncSession = Depends(get_db),
    transcript: TranscriptStore = Depends(get_transcript_store),
    provider: PaymentProvider = Depends(get_payment_provider),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> OrderStateController:
    return OrderStateController(db, transcript, provider, dispatcher)


def get_order_view_reconciler(
    orders: OrderStateController = Depends(get_order_controller),
) -> OrderViewReconciler:
    return OrderViewReconciler(orders)
