"""Order State Controller — fulfillment advances, payment cancellation and reconciliation.

Invariants:
    - Every status write is `UPDATE orders ... WHERE id AND status AND version` (rowcount checked)
    - created -> paid only when the payment mirror is SUCCESS (advance and reconcile share this)
    - Cancellation checks status BEFORE calling the provider; an explicit provider
      FAILURE leaves the order untouched (CancellationFailedError)
    - An UNKNOWN provider outcome cancels optimistically and sets reconcile_pending
    - Transcript messages and events follow the status commit; append failures are logged only
    - Reconciliation yields to a concurrent writer: a lost promotion or cancel mirror
      returns the order as the winner left it

Design Decisions:
    - The payment mirror (payments table) is the only place raw provider state lands,
      already normalized by the gateway client
    - reconcile_from_payment re-queries the provider only when the mirror is missing or
      unsettled (ready/unknown), or when a cancellation awaits confirmation
    - The bid linked to an order is marked completed through BidStateController,
      so its CAS rules and events apply unchanged
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plantbid.core.domain_types import OrderStatus, PaymentStatus, ProviderOutcome
from plantbid.core.errors import (
    CancellationFailedError, ConcurrencyError, ErrorContext,
    InvalidTransitionError, PlantBidError, ResourceNotFoundError,
)
from plantbid.core.events import OrderStatusChanged
from plantbid.core.order_transitions import (
    CANCELLABLE_STATUSES,
    build_tracking_info, check_advance, check_cancellable,
    should_mirror_cancellation, should_promote_to_paid, stamp_completed,
)
from plantbid.core.repository_protocols import PaymentProvider, ProviderPayment
from plantbid.core.transcript import order_cancelled_message, order_status_message
from plantbid.infrastructure.event_dispatcher import EventDispatcher
from plantbid.models.order import Order
from plantbid.models.payment_record import PaymentRecord
from plantbid.services.bid_controller import BidStateController
from plantbid.services.transcript_store import TranscriptStore

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 5
UNSETTLED_PAYMENT = frozenset({PaymentStatus.READY, PaymentStatus.UNKNOWN})
PROVIDER_CANCELLED_REASON = "Payment was cancelled at the payment provider."
REISSUE_CANCEL_REASON = "Re-issued cancellation awaiting provider confirmation."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStateController:
    """Owns order status rules and their side effects."""

    def __init__(
        self,
        db: AsyncSession,
        transcript: TranscriptStore,
        provider: PaymentProvider,
        dispatcher: EventDispatcher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.transcript = transcript
        self.provider = provider
        self.dispatcher = dispatcher
        self.clock = clock
        self.bids = BidStateController(db, transcript, dispatcher, clock)

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, order_id: str) -> Order:
        result = await self.db.execute(
            select(Order).where(Order.order_id == order_id)
            .execution_options(populate_existing=True),
        )
        order = result.scalar_one_or_none()
        if not order:
            raise ResourceNotFoundError(
                "Order", order_id, ErrorContext(order_id=order_id),
            )
        return order

    async def payment_record(self, order_id: str) -> PaymentRecord | None:
        result = await self.db.execute(
            select(PaymentRecord).where(PaymentRecord.order_id == order_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _mirror_status(record: PaymentRecord | None) -> PaymentStatus | None:
        return PaymentStatus(record.status) if record else None

    # ─── AdvanceStatus ───────────────────────────────────────────

    async def advance_status(self, order_id: str, target: OrderStatus) -> Order:
        """Move one step along created→paid→preparing→shipping→delivered→completed."""
        for attempt in range(MAX_CAS_ATTEMPTS):
            order = await self.get(order_id)
            current = OrderStatus(order.status)
            check_advance(current, target, order_id)

            now = self.clock()
            values: dict = {}
            if target is OrderStatus.PAID:
                record = await self.payment_record(order_id)
                if not should_promote_to_paid(current, self._mirror_status(record)):
                    raise InvalidTransitionError(
                        current.value, target.value,
                        "payment has not succeeded", ErrorContext(order_id=order_id),
                    )
            elif target is OrderStatus.SHIPPING:
                values["tracking_info"] = build_tracking_info(now, order.tracking_info)
            elif target is OrderStatus.COMPLETED:
                values["tracking_info"] = stamp_completed(order.tracking_info, now)

            if await self._compare_and_set(order, target, values):
                fresh = await self.get(order_id)
                bid_id = fresh.bid_id
                messages = []
                if target is not OrderStatus.PAID:
                    messages.append(order_status_message(target, now, fresh.tracking_info))
                await self._after_transition(fresh, current, messages)
                if target is OrderStatus.COMPLETED and bid_id:
                    await self._complete_bid(order_id, bid_id)
                return await self.get(order_id)

            logger.info(
                "Order compare-and-set lost, re-reading",
                extra={"order_id": order_id, "attempt": attempt + 1},
            )

        raise ConcurrencyError(
            f"Order {order_id} kept changing; gave up after {MAX_CAS_ATTEMPTS} attempts",
            ErrorContext(order_id=order_id),
        )

    async def _complete_bid(self, order_id: str, bid_id: int) -> None:
        try:
            await self.bids.mark_completed(bid_id)
        except PlantBidError as e:
            logger.error(
                f"Could not mark bid completed for order: {e.message}",
                extra={"order_id": order_id, "bid_id": bid_id, "error_code": e.code},
            )

    # ─── CancelPayment ───────────────────────────────────────────

    async def cancel_payment(self, order_id: str, reason: str) -> dict:
        """Cancel at the provider, then locally.

        Returns {"success", "apiCallSuccess", "order"}; apiCallSuccess is False
        when the provider's answer was ambiguous and the local cancel is optimistic.
        """
        context = ErrorContext(order_id=order_id)
        order = await self.get(order_id)
        record = await self.payment_record(order_id)
        check_cancellable(OrderStatus(order.status), self._mirror_status(record), order_id)

        payment_key = record.payment_key or order.payment_ref or order_id
        result = await self.provider.cancel_payment(payment_key, reason)
        if result.outcome is ProviderOutcome.FAILURE:
            raise CancellationFailedError(result.detail, context)

        pending = result.outcome is ProviderOutcome.UNKNOWN
        await self._write_cancelled(order_id, reason, reconcile_pending=pending)
        if result.api_call_success:
            await self._mirror_cancelled(order_id, reason)
        else:
            logger.warning(
                "Cancellation outcome unknown; order cancelled optimistically",
                extra={"order_id": order_id, "provider_outcome": result.outcome.value},
            )
        return {
            "success": result.success,
            "apiCallSuccess": result.api_call_success,
            "order": await self.get(order_id),
        }

    async def _write_cancelled(
        self, order_id: str, reason: str, reconcile_pending: bool = False,
    ) -> Order:
        for attempt in range(MAX_CAS_ATTEMPTS):
            order = await self.get(order_id)
            current = OrderStatus(order.status)
            if current is OrderStatus.CANCELLED:
                return order
            if current not in CANCELLABLE_STATUSES:
                # provider already refunded; the order moved on underneath us
                logger.error(
                    "Order advanced while its payment was being cancelled",
                    extra={"order_id": order_id, "status_from": current.value},
                )
                raise ConcurrencyError(
                    f"Order {order_id} moved to '{current.value}' during cancellation",
                    ErrorContext(order_id=order_id),
                )
            now = self.clock()
            values = {"reconcile_pending": reconcile_pending}
            if await self._compare_and_set(order, OrderStatus.CANCELLED, values):
                fresh = await self.get(order_id)
                await self._after_transition(
                    fresh, current, [order_cancelled_message(reason, now)],
                )
                return await self.get(order_id)
            logger.info(
                "Order compare-and-set lost, re-reading",
                extra={"order_id": order_id, "attempt": attempt + 1},
            )
        raise ConcurrencyError(
            f"Order {order_id} kept changing; gave up after {MAX_CAS_ATTEMPTS} attempts",
            ErrorContext(order_id=order_id),
        )

    # ─── ReconcileFromPayment ────────────────────────────────────

    async def reconcile_from_payment(self, order_id: str) -> Order:
        """Align local status with the provider's record of the payment.

        Provider errors (timeout, ambiguous, failure) propagate to the caller. If
        another writer moves the order first, its status stands and is returned.
        """
        order = await self.get(order_id)
        if order.reconcile_pending:
            return await self._confirm_pending_cancellation(order)

        current = OrderStatus(order.status)
        if current not in CANCELLABLE_STATUSES:
            return order

        record = await self.payment_record(order_id)
        if record is None or PaymentStatus(record.status) in UNSETTLED_PAYMENT:
            payment = await self.provider.get_payment(order_id)
            if payment is None:
                logger.info(
                    "Provider has no payment for order yet",
                    extra={"order_id": order_id},
                )
                return order
            record = await self.store_mirror(payment)

        status = PaymentStatus(record.status)
        # another view or the vendor may have moved the order during the provider call
        current = OrderStatus((await self.get(order_id)).status)
        try:
            if should_promote_to_paid(current, status):
                return await self.advance_status(order_id, OrderStatus.PAID)
            if should_mirror_cancellation(current, status):
                return await self._write_cancelled(order_id, PROVIDER_CANCELLED_REASON)
        except (InvalidTransitionError, ConcurrencyError) as e:
            logger.info(
                "Order changed underneath reconciliation, keeping its status",
                extra={"order_id": order_id, "error_code": e.code},
            )
        return await self.get(order_id)

    async def _confirm_pending_cancellation(self, order: Order) -> Order:
        order_id = order.order_id
        payment = await self.provider.get_payment(order_id)
        if payment is None:
            return order
        await self.store_mirror(payment)

        if payment.status is PaymentStatus.SUCCESS:
            result = await self.provider.cancel_payment(
                payment.payment_key, REISSUE_CANCEL_REASON,
            )
            if not result.api_call_success:
                logger.warning(
                    "Re-issued cancellation still unconfirmed",
                    extra={"order_id": order_id, "provider_outcome": result.outcome.value},
                )
                return await self.get(order_id)
            await self._mirror_cancelled(order_id, REISSUE_CANCEL_REASON)
        elif payment.status is not PaymentStatus.CANCELLED:
            return await self.get(order_id)

        await self._clear_reconcile_pending(order_id)
        logger.info(
            "Pending cancellation confirmed by provider",
            extra={"order_id": order_id},
        )
        return await self.get(order_id)

    async def _clear_reconcile_pending(self, order_id: str) -> None:
        for _ in range(MAX_CAS_ATTEMPTS):
            order = await self.get(order_id)
            if not order.reconcile_pending:
                return
            if await self._compare_and_set(
                order, OrderStatus(order.status), {"reconcile_pending": False},
            ):
                return
        raise ConcurrencyError(
            f"Order {order_id} kept changing while clearing reconcile flag",
            ErrorContext(order_id=order_id),
        )

    # ─── Payment mirror ──────────────────────────────────────────

    async def store_mirror(self, payment: ProviderPayment) -> PaymentRecord:
        """Insert or refresh the local mirror of the provider's record."""
        values = {
            "payment_key": payment.payment_key,
            "status": payment.status.value,
            "raw_status": payment.raw_status,
            "amount": payment.amount,
            "approved_at": payment.approved_at,
            "cancelled_at": payment.cancelled_at,
            "updated_at": self.clock(),
        }
        record = await self.payment_record(payment.order_id)
        if record is None:
            self.db.add(PaymentRecord(order_id=payment.order_id, **values))
            try:
                await self.db.commit()
            except IntegrityError:
                # another view stored it first
                await self.db.rollback()
                record = await self.payment_record(payment.order_id)
        if record is not None:
            await self.db.execute(
                update(PaymentRecord)
                .where(PaymentRecord.order_id == payment.order_id)
                .values(**values)
                .execution_options(synchronize_session=False),
            )
            await self.db.commit()
        return await self.payment_record(payment.order_id)

    async def _mirror_cancelled(self, order_id: str, reason: str) -> None:
        now = self.clock()
        await self.db.execute(
            update(PaymentRecord)
            .where(PaymentRecord.order_id == order_id)
            .values(
                status=PaymentStatus.CANCELLED.value,
                cancelled_at=now,
                cancel_reason=reason,
                updated_at=now,
            )
            .execution_options(synchronize_session=False),
        )
        await self.db.commit()

    # ─── Compare-and-set core ────────────────────────────────────

    async def _compare_and_set(
        self, order: Order, target: OrderStatus, values: dict,
    ) -> bool:
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order.id)
            .where(Order.status == order.status)
            .where(Order.version == order.version)
            .values(
                status=target.value,
                version=order.version + 1,
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

    async def _after_transition(
        self, order: Order, previous: OrderStatus, messages: list[dict],
    ) -> None:
        # plain values only: a transcript retry expires the ORM instance
        event = OrderStatusChanged(
            order_id=order.order_id,
            vendor_id=order.vendor_id,
            customer_id=order.customer_id,
            previous=previous.value,
            current=order.status,
        )
        conversation_id = order.conversation_id
        logger.info(
            "Order status changed",
            extra={
                "order_id": event.order_id,
                "status_from": event.previous,
                "status_to": event.current,
            },
        )
        if messages and conversation_id:
            try:
                await self.transcript.append(conversation_id, messages)
            except PlantBidError as e:
                logger.error(
                    f"Transcript append failed after order transition: {e.message}",
                    extra={
                        "order_id": event.order_id,
                        "conversation_id": conversation_id,
                        "error_code": e.code,
                    },
                )
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(
                    f"Transcript append failed after order transition: {e}",
                    extra={"order_id": event.order_id, "conversation_id": conversation_id},
                )
        if self.dispatcher:
            await self.dispatcher.publish(event)
