"""Conversation Routes — posting, de-duplication and versioned replacement."""


async def test_post_message(client, catalog):
    res = await client.post(
        "/api/v1/conversations/1/messages",
        json={"role": "customer", "content": "Is it pet safe?"},
    )
    assert res.status_code == 201
    body = res.json()
    assert body["version"] == 1
    assert body["messages"][0]["content"] == "Is it pet safe?"
    assert body["messages"][0]["role"] == "customer"


async def test_repeat_post_is_dropped(client, catalog):
    payload = {"role": "vendor", "content": "Yes, it is.", "vendorId": 1}
    await client.post("/api/v1/conversations/1/messages", json=payload)
    res = await client.post("/api/v1/conversations/1/messages", json=payload)
    assert res.json()["version"] == 1
    assert len(res.json()["messages"]) == 1


async def test_system_role_rejected(client, catalog):
    res = await client.post(
        "/api/v1/conversations/1/messages",
        json={"role": "system", "content": "spoofed"},
    )
    assert res.status_code == 400


async def test_missing_conversation_is_404(client, catalog):
    res = await client.get("/api/v1/conversations/999")
    assert res.status_code == 404


async def test_replace_with_stale_version_is_409(client, catalog):
    await client.post(
        "/api/v1/conversations/1/messages",
        json={"role": "customer", "content": "hello"},
    )
    res = await client.put(
        "/api/v1/conversations/1/messages",
        json={"messages": [], "expectedVersion": 0},
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "CONCURRENCY_CONFLICT"


async def test_replace_with_current_version(client, catalog):
    res = await client.put(
        "/api/v1/conversations/1/messages",
        json={"messages": [{"role": "system", "content": "reset", "timestamp": "2026-05-01T09:00:00+00:00"}],
              "expectedVersion": 0},
    )
    assert res.status_code == 200
    assert res.json()["version"] == 1
    assert res.json()["messages"][0]["content"] == "reset"
