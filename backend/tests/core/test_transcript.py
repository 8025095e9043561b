"""Transcript Messages — tests for pure message builders and transcript reading.

Tests cover:
    - finalize_messages order, 500 ms offset, detail skipped for blank message
    - per-status order templates, tracking info on shipping
    - stable timestamp sort, unreadable timestamps sort first
    - duplicate detection window
"""

from datetime import datetime, timedelta, timezone

import pytest

from plantbid.core.domain_types import MessageRole, OrderStatus
from plantbid.core.transcript import (
    COMPLETION_OFFSET,
    finalize_messages, is_duplicate_message, order_cancelled_message,
    order_status_message, parse_timestamp, posted_message,
    review_started_message, selection_cleared_message, sort_transcript,
)

NOW = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
PRODUCTS = [{"id": 7, "name": "Monstera Deliciosa", "price": 12000}]


# ─── Bid messages ────────────────────────────────────────────────

def test_review_started_names_product():
    message = review_started_message("Monstera Deliciosa", 1, NOW)
    assert message["bidStatus"] == "reviewing"
    assert "Monstera Deliciosa" in message["content"]
    assert message["vendorId"] == 1


def test_selection_cleared_is_system_pending():
    message = selection_cleared_message(1, NOW)
    assert message["role"] == "system"
    assert message["bidStatus"] == "pending"


def test_finalize_messages_detail_then_completed():
    detail, completed = finalize_messages(
        15000, PRODUCTS, "gift wrap", ["https://img.example/a.jpg"], 1, NOW,
    )
    assert detail["price"] == 15000
    assert detail["content"] == "gift wrap"
    assert detail["products"] == PRODUCTS
    assert detail["imageUrl"] == "https://img.example/a.jpg"
    assert "bidStatus" not in detail
    assert completed["bidStatus"] == "completed"
    assert (
        parse_timestamp(completed["timestamp"]) - parse_timestamp(detail["timestamp"])
        == COMPLETION_OFFSET
    )


@pytest.mark.parametrize("vendor_message", [None, "", "   "])
def test_finalize_messages_skip_detail_without_message(vendor_message):
    messages = finalize_messages(15000, PRODUCTS, vendor_message, [], 1, NOW)
    assert len(messages) == 1
    assert messages[0]["bidStatus"] == "completed"


def test_detail_without_images_has_no_image_url():
    detail, _ = finalize_messages(15000, PRODUCTS, "hi", [], 1, NOW)
    assert "imageUrl" not in detail
    assert detail["images"] == []


# ─── Order messages ──────────────────────────────────────────────

@pytest.mark.parametrize("status", [
    OrderStatus.PREPARING, OrderStatus.SHIPPING,
    OrderStatus.DELIVERED, OrderStatus.COMPLETED,
])
def test_order_status_message_is_system(status):
    message = order_status_message(status, NOW)
    assert message["role"] == "system"
    assert message["orderStatus"] == status.value
    assert message["content"]


def test_shipping_message_carries_tracking_number():
    message = order_status_message(
        OrderStatus.SHIPPING, NOW,
        {"company": "Postal Parcel", "trackingNumber": "TK-12345678"},
    )
    assert "TK-12345678" in message["content"]
    assert "Postal Parcel" in message["content"]


def test_cancelled_message_includes_reason():
    message = order_cancelled_message("changed my mind", NOW)
    assert message["orderStatus"] == "cancelled"
    assert "changed my mind" in message["content"]


def test_posted_message_optional_fields():
    bare = posted_message(MessageRole.CUSTOMER, "hello", NOW)
    assert set(bare) == {"role", "content", "timestamp"}
    full = posted_message(MessageRole.VENDOR, "photo", NOW, vendor_id=1, images=["a.jpg"])
    assert full["vendorId"] == 1
    assert full["images"] == ["a.jpg"]


# ─── Reading ─────────────────────────────────────────────────────

def test_sort_is_by_timestamp_and_stable():
    later = {"content": "later", "timestamp": (NOW + timedelta(seconds=5)).isoformat()}
    first = {"content": "first", "timestamp": NOW.isoformat()}
    tie = {"content": "tie", "timestamp": NOW.isoformat()}
    assert [m["content"] for m in sort_transcript([later, first, tie])] == [
        "first", "tie", "later",
    ]


def test_unreadable_timestamps_sort_first():
    good = {"content": "good", "timestamp": NOW.isoformat()}
    bad = {"content": "bad", "timestamp": "yesterday"}
    missing = {"content": "missing"}
    assert [m["content"] for m in sort_transcript([good, bad, missing])] == [
        "bad", "missing", "good",
    ]


def test_z_suffix_timestamps_parse():
    assert parse_timestamp("2026-05-01T09:00:00Z") == NOW


def test_duplicate_within_window():
    existing = [posted_message(MessageRole.CUSTOMER, "hello", NOW)]
    candidate = posted_message(MessageRole.CUSTOMER, "hello", NOW + timedelta(seconds=30))
    assert is_duplicate_message(existing, candidate, NOW + timedelta(seconds=30))


def test_not_duplicate_after_window():
    existing = [posted_message(MessageRole.CUSTOMER, "hello", NOW)]
    later = NOW + timedelta(minutes=2)
    candidate = posted_message(MessageRole.CUSTOMER, "hello", later)
    assert not is_duplicate_message(existing, candidate, later)


def test_not_duplicate_for_other_role():
    existing = [posted_message(MessageRole.CUSTOMER, "hello", NOW)]
    candidate = posted_message(MessageRole.VENDOR, "hello", NOW)
    assert not is_duplicate_message(existing, candidate, NOW)
