"""Event Dispatcher — owned subscriptions and isolated handlers."""

from plantbid.core.events import BidStatusChanged
from plantbid.infrastructure.event_dispatcher import EventDispatcher


def _event():
    return BidStatusChanged(
        bid_id=42, vendor_id=1, customer_id=10, previous="pending", current="reviewing",
    )


async def test_publish_reaches_handlers_in_order():
    dispatcher = EventDispatcher()
    seen = []

    async def first(event):
        seen.append(("first", event.bid_id))

    async def second(event):
        seen.append(("second", event.bid_id))

    dispatcher.subscribe(first)
    dispatcher.subscribe(second)
    await dispatcher.publish(_event())
    assert seen == [("first", 42), ("second", 42)]


async def test_release_removes_only_that_handler():
    dispatcher = EventDispatcher()
    seen = []

    async def handler(event):
        seen.append(event)

    kept = dispatcher.subscribe(handler)
    released = dispatcher.subscribe(handler)
    released.release()
    await dispatcher.publish(_event())
    assert len(seen) == 1
    assert kept.active
    assert not released.active


def test_release_is_idempotent():
    dispatcher = EventDispatcher()

    async def handler(event):
        pass

    subscription = dispatcher.subscribe(handler)
    subscription.release()
    subscription.release()
    assert dispatcher.handler_count == 0


def test_subscription_as_context_manager():
    dispatcher = EventDispatcher()

    async def handler(event):
        pass

    with dispatcher.subscribe(handler):
        assert dispatcher.handler_count == 1
    assert dispatcher.handler_count == 0


async def test_failing_handler_is_isolated():
    dispatcher = EventDispatcher()
    seen = []

    async def broken(event):
        raise RuntimeError("boom")

    async def healthy(event):
        seen.append(event)

    dispatcher.subscribe(broken)
    dispatcher.subscribe(healthy)
    await dispatcher.publish(_event())
    assert len(seen) == 1


async def test_release_during_publish_is_safe():
    dispatcher = EventDispatcher()
    seen = []
    subscriptions = []

    async def releases_itself(event):
        subscriptions[0].release()
        seen.append("self")

    async def other(event):
        seen.append("other")

    subscriptions.append(dispatcher.subscribe(releases_itself))
    dispatcher.subscribe(other)
    await dispatcher.publish(_event())
    await dispatcher.publish(_event())
    assert seen == ["self", "other", "other"]
