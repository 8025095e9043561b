"""Bid Transition Rules — pure planning of every vendor-facing bid mutation.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no clock
    - A plan describes the new status, the new selection and the ONE transcript
      emission (if any) the shell must append after the status write commits
    - pending -> reviewing only on the first add; reviewing -> pending only when
      the selection empties; bidded requires price and a non-empty selection
    - bidded and completed bids are frozen for vendor edits
    - Violations raise typed errors from core/errors.py; the shell never mutates on raise

Design Decisions:
    - Plans instead of direct mutation: the shell applies them with a single
      compare-and-set UPDATE keyed on the snapshot's status and version
    - Catalog membership is checked by the shell (needs DB) before planning
"""

from dataclasses import dataclass
from enum import Enum

from plantbid.core.domain_types import BidStatus
from plantbid.core.errors import (
    AlreadyFinalizedError, ErrorContext, InvalidTransitionError, ValidationError,
)


FROZEN_STATUSES = frozenset({BidStatus.BIDDED, BidStatus.COMPLETED})


class BidEmission(str, Enum):
    """Which transcript message a plan requires."""
    REVIEW_STARTED = "review_started"
    SELECTION_CLEARED = "selection_cleared"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class BidSnapshot:
    """The fields of a stored bid the rules look at, as read."""
    id: int
    status: BidStatus
    selected_product_ids: tuple[int, ...]
    price: int | None
    vendor_message: str | None
    reference_images: tuple[str, ...]
    vendor_id: int
    version: int


@dataclass(frozen=True)
class BidPlan:
    status: BidStatus
    selected_product_ids: tuple[int, ...]
    emission: BidEmission | None = None
    changed: bool = True


def _no_op(snapshot: BidSnapshot) -> BidPlan:
    return BidPlan(
        status=snapshot.status,
        selected_product_ids=snapshot.selected_product_ids,
        changed=False,
    )


def _check_not_frozen(snapshot: BidSnapshot, action: str) -> None:
    if snapshot.status in FROZEN_STATUSES:
        raise InvalidTransitionError(
            snapshot.status.value, snapshot.status.value,
            f"cannot {action} on a finalized bid",
            ErrorContext(bid_id=snapshot.id),
        )


def plan_add_product(snapshot: BidSnapshot, product_id: int) -> BidPlan:
    """Add product_id to the selection. Re-adding is a no-op."""
    _check_not_frozen(snapshot, "add products")
    if product_id in snapshot.selected_product_ids:
        return _no_op(snapshot)

    selection = snapshot.selected_product_ids + (product_id,)
    if snapshot.status is BidStatus.PENDING:
        return BidPlan(
            status=BidStatus.REVIEWING,
            selected_product_ids=selection,
            emission=BidEmission.REVIEW_STARTED,
        )
    return BidPlan(status=snapshot.status, selected_product_ids=selection)


def plan_remove_product(snapshot: BidSnapshot, product_id: int) -> BidPlan:
    """Remove product_id from the selection. Removing an absent id is a no-op."""
    _check_not_frozen(snapshot, "remove products")
    if product_id not in snapshot.selected_product_ids:
        return _no_op(snapshot)

    selection = tuple(
        pid for pid in snapshot.selected_product_ids if pid != product_id
    )
    if not selection and snapshot.status is BidStatus.REVIEWING:
        return BidPlan(
            status=BidStatus.PENDING,
            selected_product_ids=selection,
            emission=BidEmission.SELECTION_CLEARED,
        )
    return BidPlan(status=snapshot.status, selected_product_ids=selection)


def check_offer(
    snapshot: BidSnapshot,
    price: object,
    images: list[str],
    max_price: int,
    max_images: int,
) -> None:
    """Validate SetPriceAndMessage input against the stored bid."""
    ctx = ErrorContext(bid_id=snapshot.id)
    _check_not_frozen(snapshot, "change the offer")
    # bool is an int subclass; True is not a price
    if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
        raise ValidationError("Price must be a positive integer.", "price", ctx)
    if price >= max_price:
        raise ValidationError(
            f"Price must be below {max_price:,}.", "price", ctx,
        )
    if len(images) > max_images:
        raise ValidationError(
            f"At most {max_images} reference images are allowed, got {len(images)}.",
            "referenceImages", ctx,
        )
    if not snapshot.selected_product_ids:
        raise ValidationError(
            "Select at least one product before setting a price.",
            "selectedProductIds", ctx,
        )


def plan_finalize(snapshot: BidSnapshot) -> BidPlan:
    """reviewing/pending -> bidded. Second call raises AlreadyFinalizedError."""
    ctx = ErrorContext(bid_id=snapshot.id)
    if snapshot.status in FROZEN_STATUSES:
        raise AlreadyFinalizedError(snapshot.status.value, ctx)
    if snapshot.price is None:
        raise ValidationError("A price must be set before finalizing.", "price", ctx)
    if not snapshot.selected_product_ids:
        raise ValidationError(
            "At least one product must be selected before finalizing.",
            "selectedProductIds", ctx,
        )
    return BidPlan(
        status=BidStatus.BIDDED,
        selected_product_ids=snapshot.selected_product_ids,
        emission=BidEmission.FINALIZED,
    )


def plan_mark_completed(snapshot: BidSnapshot) -> BidPlan:
    """bidded -> completed, driven by order fulfillment. Idempotent on completed."""
    if snapshot.status is BidStatus.COMPLETED:
        return _no_op(snapshot)
    if snapshot.status is not BidStatus.BIDDED:
        raise InvalidTransitionError(
            snapshot.status.value, BidStatus.COMPLETED.value,
            "only a bidded bid can be completed",
            ErrorContext(bid_id=snapshot.id),
        )
    return BidPlan(
        status=BidStatus.COMPLETED,
        selected_product_ids=snapshot.selected_product_ids,
    )


def diff_selection(
    current: tuple[int, ...], desired: list[int],
) -> tuple[list[int], list[int]]:
    """Split a desired selection into (adds, removes), preserving request order."""
    seen: set[int] = set()
    wanted = []
    for pid in desired:
        if pid not in seen:
            seen.add(pid)
            wanted.append(pid)
    adds = [pid for pid in wanted if pid not in current]
    removes = [pid for pid in current if pid not in seen]
    return adds, removes
