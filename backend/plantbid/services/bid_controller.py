"""Bid State Controller — applies bid transition plans with compare-and-set writes.

Invariants:
    - Every write is `UPDATE bids ... WHERE id AND status AND version` (rowcount checked)
    - A lost compare-and-set re-reads and re-plans; rules are re-evaluated on fresh state
    - Transcript messages are appended only by the writer whose CAS won, after its commit
    - Transcript failures are logged, never rolled back into the status write
    - Under N concurrent finalize() calls exactly one commits; the rest see AlreadyFinalizedError

Design Decisions:
    - Pure planning in core/bid_transitions.py; this module only does IO around it
    - update() is the partial-field surface: adds, then removes, then offer, then finalize,
      so a swap of products never passes through an empty selection
    - clock injectable for deterministic transcript timestamps in tests
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plantbid.config import get_settings
from plantbid.core.bid_transitions import (
    BidEmission, BidPlan, BidSnapshot,
    check_offer, diff_selection,
    plan_add_product, plan_finalize, plan_mark_completed, plan_remove_product,
)
from plantbid.core.domain_types import BidStatus
from plantbid.core.errors import (
    ConcurrencyError, ErrorContext, PlantBidError, ResourceNotFoundError, ValidationError,
)
from plantbid.core.events import BidStatusChanged
from plantbid.core.transcript import (
    finalize_messages, review_started_message, selection_cleared_message,
)
from plantbid.infrastructure.event_dispatcher import EventDispatcher
from plantbid.models.bid import Bid
from plantbid.models.product import Product
from plantbid.services.transcript_store import TranscriptStore

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def snapshot_of(bid: Bid) -> BidSnapshot:
    return BidSnapshot(
        id=bid.id,
        status=BidStatus(bid.status),
        selected_product_ids=tuple(bid.selected_product_ids or ()),
        price=bid.price,
        vendor_message=bid.vendor_message,
        reference_images=tuple(bid.reference_images or ()),
        vendor_id=bid.vendor_id,
        version=bid.version,
    )


class BidStateController:
    """Vendor-facing bid mutations: add/remove product, offer, finalize."""

    def __init__(
        self,
        db: AsyncSession,
        transcript: TranscriptStore,
        dispatcher: EventDispatcher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.transcript = transcript
        self.dispatcher = dispatcher
        self.clock = clock
        settings = get_settings()
        self.max_price = settings.bid_max_price
        self.max_images = settings.bid_max_reference_images

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, bid_id: int) -> Bid:
        result = await self.db.execute(
            select(Bid).where(Bid.id == bid_id)
            .execution_options(populate_existing=True),
        )
        bid = result.scalar_one_or_none()
        if not bid:
            raise ResourceNotFoundError("Bid", str(bid_id), ErrorContext(bid_id=bid_id))
        return bid

    async def _catalog_product(self, bid: Bid, product_id: int) -> Product:
        result = await self.db.execute(
            select(Product).where(Product.id == product_id),
        )
        product = result.scalar_one_or_none()
        if not product or product.vendor_id != bid.vendor_id:
            raise ValidationError(
                f"Product {product_id} is not in this vendor's catalog.",
                "productId", ErrorContext(bid_id=bid.id),
            )
        return product

    async def _product_snapshots(self, product_ids: tuple[int, ...]) -> list[dict]:
        if not product_ids:
            return []
        result = await self.db.execute(
            select(Product).where(Product.id.in_(product_ids)),
        )
        by_id = {p.id: p for p in result.scalars().all()}
        return [by_id[pid].snapshot() for pid in product_ids if pid in by_id]

    # ─── Operations ──────────────────────────────────────────────

    async def add_product(self, bid_id: int, product_id: int) -> Bid:
        """Select a catalog product; first selection moves pending -> reviewing."""
        bid = await self.get(bid_id)
        product = await self._catalog_product(bid, product_id)
        return await self._mutate(
            bid_id,
            lambda snap: plan_add_product(snap, product_id),
            product_name=product.name,
        )

    async def remove_product(self, bid_id: int, product_id: int) -> Bid:
        """Deselect a product; emptying a reviewing bid moves it back to pending."""
        return await self._mutate(
            bid_id, lambda snap: plan_remove_product(snap, product_id),
        )

    async def set_price_and_message(
        self,
        bid_id: int,
        price: int,
        message: str | None,
        images: list[str] | None = None,
    ) -> Bid:
        """Record the vendor's offer. Status is left as is."""
        images = list(images or [])

        def plan(snap: BidSnapshot) -> BidPlan:
            check_offer(snap, price, images, self.max_price, self.max_images)
            return BidPlan(
                status=snap.status, selected_product_ids=snap.selected_product_ids,
            )

        return await self._mutate(
            bid_id, plan,
            values={"price": price, "vendor_message": message, "reference_images": images},
        )

    async def finalize(self, bid_id: int) -> Bid:
        """reviewing -> bidded, then append [detail?, completed] in one write."""
        return await self._mutate(bid_id, plan_finalize)

    async def mark_completed(self, bid_id: int) -> Bid:
        """bidded -> completed once the order built from this bid completes."""
        return await self._mutate(bid_id, plan_mark_completed)

    async def update(
        self,
        bid_id: int,
        selected_product_ids: list[int] | None = None,
        price: int | None = None,
        vendor_message: str | None = None,
        reference_images: list[str] | None = None,
        status: BidStatus | None = None,
    ) -> Bid:
        """Partial-field update: translates field deltas into the operations above."""
        if status is not None and status is not BidStatus.BIDDED:
            raise ValidationError(
                "Only 'bidded' may be requested explicitly; other statuses follow "
                "from product selection and order fulfillment.",
                "status", ErrorContext(bid_id=bid_id),
            )

        if selected_product_ids is not None:
            bid = await self.get(bid_id)
            adds, removes = diff_selection(
                tuple(bid.selected_product_ids or ()), selected_product_ids,
            )
            for product_id in adds:
                await self.add_product(bid_id, product_id)
            for product_id in removes:
                await self.remove_product(bid_id, product_id)

        if price is not None or vendor_message is not None or reference_images is not None:
            bid = await self.get(bid_id)
            await self.set_price_and_message(
                bid_id,
                price if price is not None else bid.price,
                vendor_message if vendor_message is not None else bid.vendor_message,
                reference_images if reference_images is not None
                else list(bid.reference_images or []),
            )

        if status is BidStatus.BIDDED:
            return await self.finalize(bid_id)
        return await self.get(bid_id)

    # ─── Compare-and-set core ────────────────────────────────────

    async def _mutate(
        self,
        bid_id: int,
        planner: Callable[[BidSnapshot], BidPlan],
        values: dict | None = None,
        product_name: str | None = None,
    ) -> Bid:
        for attempt in range(MAX_CAS_ATTEMPTS):
            bid = await self.get(bid_id)
            snap = snapshot_of(bid)
            plan = planner(snap)
            if not plan.changed:
                return bid

            if await self._compare_and_set(snap, plan, values or {}):
                fresh = await self.get(bid_id)
                if plan.status is not snap.status:
                    logger.info(
                        "Bid status changed",
                        extra={
                            "bid_id": bid_id,
                            "status_from": snap.status.value,
                            "status_to": plan.status.value,
                        },
                    )
                await self._emit(fresh, plan.emission, product_name)
                # a transcript retry rolls the session back and expires fresh
                fresh = await self.get(bid_id)
                if plan.status is not snap.status:
                    await self._publish(fresh, snap.status)
                return fresh

            logger.info(
                "Bid compare-and-set lost, re-reading",
                extra={"bid_id": bid_id, "attempt": attempt + 1},
            )

        raise ConcurrencyError(
            f"Bid {bid_id} kept changing; gave up after {MAX_CAS_ATTEMPTS} attempts",
            ErrorContext(bid_id=bid_id),
        )

    async def _compare_and_set(
        self, snap: BidSnapshot, plan: BidPlan, values: dict,
    ) -> bool:
        result = await self.db.execute(
            update(Bid)
            .where(Bid.id == snap.id)
            .where(Bid.status == snap.status.value)
            .where(Bid.version == snap.version)
            .values(
                status=plan.status.value,
                selected_product_ids=list(plan.selected_product_ids),
                version=snap.version + 1,
                updated_at=self.clock(),
                **values,
            )
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            await self.db.rollback()
            return False
        await self.db.commit()
        return True

    # ─── Side effects (after commit) ─────────────────────────────

    async def _emit(
        self, bid: Bid, emission: BidEmission | None, product_name: str | None,
    ) -> None:
        if emission is None or not bid.conversation_id:
            return
        bid_id, conversation_id = bid.id, bid.conversation_id
        now = self.clock()
        if emission is BidEmission.REVIEW_STARTED:
            messages = [review_started_message(
                product_name or "", bid.vendor_id, now,
            )]
        elif emission is BidEmission.SELECTION_CLEARED:
            messages = [selection_cleared_message(bid.vendor_id, now)]
        else:
            products = await self._product_snapshots(
                tuple(bid.selected_product_ids or ()),
            )
            messages = finalize_messages(
                bid.price, products, bid.vendor_message,
                list(bid.reference_images or []), bid.vendor_id, now,
            )
        try:
            await self.transcript.append(conversation_id, messages)
        except PlantBidError as e:
            logger.error(
                f"Transcript append failed after bid transition: {e.message}",
                extra={
                    "bid_id": bid_id,
                    "conversation_id": conversation_id,
                    "error_code": e.code,
                },
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Transcript append failed after bid transition: {e}",
                extra={"bid_id": bid_id, "conversation_id": conversation_id},
            )

    async def _publish(self, bid: Bid, previous: BidStatus) -> None:
        if not self.dispatcher:
            return
        await self.dispatcher.publish(BidStatusChanged(
            bid_id=bid.id,
            vendor_id=bid.vendor_id,
            customer_id=bid.customer_id,
            previous=previous.value,
            current=bid.status,
        ))
