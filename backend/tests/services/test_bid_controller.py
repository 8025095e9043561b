"""Bid State Controller — bid lifecycle against a real (SQLite) database.

Invariants:
    - Scenario: bid 42 goes pending -> reviewing -> bidded with exactly the
      review-started, detail and completed messages
    - Concurrent finalize: one winner, the rest AlreadyFinalized, one message pair
    - Transcript failures never undo a committed status change
"""

import asyncio

import pytest

from plantbid.core.domain_types import BidStatus
from plantbid.core.errors import (
    AlreadyFinalizedError, InvalidTransitionError, ResourceNotFoundError, ValidationError,
)
from plantbid.core.events import BidStatusChanged
from plantbid.core.transcript import parse_timestamp
from plantbid.infrastructure.event_dispatcher import EventDispatcher
from plantbid.services.bid_controller import BidStateController
from plantbid.services.transcript_store import TranscriptStore

from tests.services.conftest import (
    fixed_clock, seed_bid, seed_catalog, seed_conversation,
)


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def bids(test_db, dispatcher):
    return BidStateController(
        test_db, TranscriptStore(test_db, base_delay_ms=1), dispatcher, clock=fixed_clock,
    )


async def _messages(bids: BidStateController, conversation_id: int = 1) -> list[dict]:
    return (await bids.transcript.read(conversation_id))["messages"]


# ─── Scenario ────────────────────────────────────────────────────

async def test_bid_42_from_empty_to_bidded(bids, pending_bid):
    with pytest.raises(ValidationError):
        await bids.finalize(42)

    bid = await bids.add_product(42, 7)
    assert bid.status == "reviewing"
    messages = await _messages(bids)
    assert len(messages) == 1
    assert messages[0]["bidStatus"] == "reviewing"
    assert "Monstera Deliciosa" in messages[0]["content"]

    bid = await bids.set_price_and_message(42, 15000, "gift wrap")
    assert bid.status == "reviewing"
    assert bid.price == 15000
    assert len(await _messages(bids)) == 1

    bid = await bids.finalize(42)
    assert bid.status == "bidded"
    detail, completed = (await _messages(bids))[1:]
    assert detail["price"] == 15000
    assert detail["content"] == "gift wrap"
    assert detail["products"][0]["id"] == 7
    assert completed["bidStatus"] == "completed"
    assert parse_timestamp(completed["timestamp"]) > parse_timestamp(detail["timestamp"])


async def test_finalize_without_vendor_message_appends_only_completed(bids, pending_bid):
    await bids.add_product(42, 7)
    await bids.set_price_and_message(42, 15000, None)
    await bids.finalize(42)
    messages = await _messages(bids)
    assert [m.get("bidStatus") for m in messages] == ["reviewing", "completed"]


async def test_second_finalize_is_hard_error(bids, pending_bid):
    await bids.add_product(42, 7)
    await bids.set_price_and_message(42, 15000, "gift wrap")
    await bids.finalize(42)
    with pytest.raises(AlreadyFinalizedError):
        await bids.finalize(42)
    assert len(await _messages(bids)) == 3


# ─── Selection ───────────────────────────────────────────────────

async def test_selection_is_set_algebra(bids, pending_bid):
    await bids.add_product(42, 7)
    await bids.add_product(42, 8)
    await bids.add_product(42, 7)
    await bids.remove_product(42, 9)
    bid = await bids.remove_product(42, 7)
    assert bid.selected_product_ids == [8]
    assert bid.status == "reviewing"
    assert len(await _messages(bids)) == 1


async def test_duplicate_add_does_not_bump_version(bids, pending_bid):
    bid = await bids.add_product(42, 7)
    version = bid.version
    bid = await bids.add_product(42, 7)
    assert bid.version == version


async def test_remove_to_empty_reverts_to_pending(bids, pending_bid):
    await bids.add_product(42, 7)
    bid = await bids.remove_product(42, 7)
    assert bid.status == "pending"
    cleared = (await _messages(bids))[-1]
    assert cleared["bidStatus"] == "pending"
    assert cleared["role"] == "system"


async def test_product_from_other_vendor_rejected(bids, pending_bid):
    with pytest.raises(ValidationError) as exc:
        await bids.add_product(42, 9)
    assert exc.value.field == "productId"


async def test_unknown_product_rejected(bids, pending_bid):
    with pytest.raises(ValidationError):
        await bids.add_product(42, 12345)


async def test_unknown_bid(bids, catalog):
    with pytest.raises(ResourceNotFoundError):
        await bids.add_product(404, 7)


async def test_bidded_bid_is_frozen(bids, test_db, catalog):
    await seed_bid(test_db, status="bidded", selected_product_ids=[7], price=15000)
    with pytest.raises(InvalidTransitionError):
        await bids.add_product(42, 8)
    with pytest.raises(InvalidTransitionError):
        await bids.remove_product(42, 7)
    with pytest.raises(InvalidTransitionError):
        await bids.set_price_and_message(42, 20000, "cheaper elsewhere?")
    bid = await bids.get(42)
    assert bid.status == "bidded"
    assert bid.selected_product_ids == [7]
    assert bid.price == 15000


# ─── Offer ───────────────────────────────────────────────────────

async def test_offer_over_ceiling_rejected(bids, pending_bid):
    await bids.add_product(42, 7)
    with pytest.raises(ValidationError):
        await bids.set_price_and_message(42, 100_000_000, "too much")


async def test_offer_requires_selection(bids, pending_bid):
    with pytest.raises(ValidationError):
        await bids.set_price_and_message(42, 15000, "no products yet")


async def test_offer_stores_images(bids, pending_bid):
    await bids.add_product(42, 7)
    bid = await bids.set_price_and_message(42, 15000, "see photos", ["a.jpg", "b.jpg"])
    assert bid.reference_images == ["a.jpg", "b.jpg"]
    await bids.finalize(42)
    detail = (await _messages(bids))[1]
    assert detail["images"] == ["a.jpg", "b.jpg"]
    assert detail["imageUrl"] == "a.jpg"


# ─── Update (partial fields) ─────────────────────────────────────

async def test_update_applies_adds_offer_and_finalize(bids, pending_bid):
    bid = await bids.update(
        42, selected_product_ids=[7, 8], price=15000,
        vendor_message="gift wrap", status=BidStatus.BIDDED,
    )
    assert bid.status == "bidded"
    assert bid.selected_product_ids == [7, 8]
    tags = [m.get("bidStatus") for m in await _messages(bids)]
    assert tags == ["reviewing", None, "completed"]


async def test_update_swap_never_passes_through_pending(bids, pending_bid):
    await bids.add_product(42, 7)
    bid = await bids.update(42, selected_product_ids=[8])
    assert bid.selected_product_ids == [8]
    assert bid.status == "reviewing"
    assert len(await _messages(bids)) == 1


async def test_update_keeps_unsent_offer_fields(bids, pending_bid):
    await bids.add_product(42, 7)
    await bids.set_price_and_message(42, 15000, "gift wrap")
    bid = await bids.update(42, price=18000)
    assert bid.price == 18000
    assert bid.vendor_message == "gift wrap"


async def test_update_rejects_derived_status(bids, pending_bid):
    with pytest.raises(ValidationError):
        await bids.update(42, status=BidStatus.COMPLETED)


# ─── Side effects ────────────────────────────────────────────────

async def test_transcript_failure_keeps_status(bids, test_db, catalog):
    await seed_bid(test_db, conversation_id=999)
    bid = await bids.add_product(42, 7)
    assert bid.status == "reviewing"
    assert (await bids.get(42)).status == "reviewing"


async def test_bid_without_conversation_still_transitions(bids, test_db, catalog):
    await seed_bid(test_db, conversation_id=None)
    bid = await bids.add_product(42, 7)
    assert bid.status == "reviewing"


async def test_status_change_published(bids, dispatcher, pending_bid):
    events = []

    async def record(event):
        events.append(event)

    with dispatcher.subscribe(record):
        await bids.add_product(42, 7)
        await bids.add_product(42, 8)
    assert len(events) == 1
    assert isinstance(events[0], BidStatusChanged)
    assert (events[0].previous, events[0].current) == ("pending", "reviewing")


async def test_mark_completed(bids, test_db, catalog):
    await seed_bid(test_db, status="bidded", selected_product_ids=[7], price=15000)
    assert (await bids.mark_completed(42)).status == "completed"
    assert (await bids.mark_completed(42)).status == "completed"


# ─── Concurrency ─────────────────────────────────────────────────

async def test_concurrent_finalize_has_one_winner(file_session_factory):
    async with file_session_factory() as db:
        await seed_catalog(db)
        await seed_conversation(db)
        await seed_bid(
            db, status="reviewing", selected_product_ids=[7],
            price=15000, vendor_message="gift wrap",
        )

    async def finalize() -> str:
        async with file_session_factory() as db:
            bids = BidStateController(db, TranscriptStore(db, base_delay_ms=1))
            try:
                await bids.finalize(42)
            except AlreadyFinalizedError:
                return "already"
            return "won"

    results = await asyncio.gather(*(finalize() for _ in range(6)))
    assert results.count("won") == 1
    assert results.count("already") == 5

    async with file_session_factory() as db:
        messages = (await TranscriptStore(db).read(1))["messages"]
    assert len(messages) == 2
    assert messages[0]["price"] == 15000
    assert messages[1]["bidStatus"] == "completed"
