"""PlantBid API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map PlantBidError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, payment client and event subscriptions set up in lifespan and
      torn down in reverse order

Design Decisions:
    - The event dispatcher lives on app.state; the buyer notifier subscribes at
      startup and releases its Subscription at shutdown
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plantbid.api.error_handlers import register_error_handlers
from plantbid.api.routes import bids, conversations, health, orders
from plantbid.config import get_settings
from plantbid.infrastructure import database
from plantbid.infrastructure.database import init_db
from plantbid.infrastructure.event_dispatcher import EventDispatcher
from plantbid.infrastructure.observability import setup_logging
from plantbid.infrastructure.payment_client import init_payment_client
from plantbid.services.notifications import BuyerNotificationHandler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    client = init_payment_client(
        settings.payment_api_base_url,
        settings.payment_api_secret,
        timeout_seconds=settings.payment_timeout_seconds,
        max_retries=settings.payment_max_retries,
        base_delay_ms=settings.payment_base_delay_ms,
        max_delay_ms=settings.payment_max_delay_ms,
    )
    notifier = app.state.event_dispatcher.subscribe(
        BuyerNotificationHandler(database.db_manager.session),
    )
    logger.info("PlantBid API started")
    yield
    logger.info("PlantBid API shutting down")
    notifier.release()
    await client.aclose()
    await database.db_manager.dispose()


app = FastAPI(title="PlantBid API", version="1.0.0", lifespan=lifespan)
app.state.event_dispatcher = EventDispatcher()

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(bids.router)
app.include_router(orders.router)
app.include_router(conversations.router)

register_error_handlers(app)
