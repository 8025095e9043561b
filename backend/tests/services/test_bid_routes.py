"""Bid Routes — HTTP surface of the bid lifecycle (camelCase JSON, error envelope)."""

from tests.services.conftest import seed_bid


async def test_get_bid(client, pending_bid):
    res = await client.get("/api/v1/bids/42")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "pending"
    assert body["selectedProductIds"] == []
    assert body["conversationId"] == 1


async def test_get_missing_bid_is_404(client, catalog):
    res = await client.get("/api/v1/bids/404")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_add_and_remove_product(client, pending_bid):
    res = await client.post("/api/v1/bids/42/products", json={"productId": 7})
    assert res.status_code == 200
    assert res.json()["status"] == "reviewing"

    res = await client.delete("/api/v1/bids/42/products/7")
    assert res.status_code == 200
    assert res.json()["status"] == "pending"
    assert res.json()["selectedProductIds"] == []


async def test_offer_validation_error_envelope(client, pending_bid):
    await client.post("/api/v1/bids/42/products", json={"productId": 7})
    res = await client.put("/api/v1/bids/42/offer", json={"price": 0, "message": "free?"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_offer_then_finalize(client, pending_bid):
    await client.post("/api/v1/bids/42/products", json={"productId": 7})
    res = await client.put(
        "/api/v1/bids/42/offer",
        json={"price": 15000, "message": "gift wrap", "images": ["a.jpg"]},
    )
    assert res.json()["price"] == 15000
    assert res.json()["referenceImages"] == ["a.jpg"]

    res = await client.post("/api/v1/bids/42/finalize")
    assert res.status_code == 200
    assert res.json()["status"] == "bidded"

    res = await client.post("/api/v1/bids/42/finalize")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "ALREADY_FINALIZED"

    res = await client.get("/api/v1/conversations/1")
    assert len(res.json()["messages"]) == 3


async def test_patch_applies_partial_fields(client, pending_bid):
    res = await client.patch("/api/v1/bids/42", json={
        "selectedProductIds": [7, 8],
        "price": 15000,
        "vendorMessage": "gift wrap",
        "status": "bidded",
    })
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "bidded"
    assert body["selectedProductIds"] == [7, 8]
    assert body["vendorMessage"] == "gift wrap"


async def test_patch_rejects_derived_status(client, pending_bid):
    res = await client.patch("/api/v1/bids/42", json={"status": "completed"})
    assert res.status_code == 400
    assert res.json()["error"]["details"]


async def test_frozen_bid_returns_409(client, test_db, catalog):
    await seed_bid(test_db, status="bidded", selected_product_ids=[7], price=15000)
    res = await client.post("/api/v1/bids/42/products", json={"productId": 8})
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "INVALID_TRANSITION"
