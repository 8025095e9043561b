"""Event Dispatcher — publish/subscribe registry for post-commit domain events.

Invariants:
    - subscribe() returns an owned Subscription; release() removes exactly that handler
    - release() is idempotent
    - publish() awaits every handler registered at call time, in registration order
    - A failing handler is logged and never affects other handlers or the publisher

Design Decisions:
    - Registry is an object owned by the app (app.state), not a module-level set
    - Handlers snapshot at publish time: releasing during publish is safe
"""

import logging

from plantbid.core.events import DomainEvent
from plantbid.core.repository_protocols import EventHandler

logger = logging.getLogger(__name__)


class Subscription:
    """Handle returned by EventDispatcher.subscribe()."""

    def __init__(self, dispatcher: "EventDispatcher", handler: EventHandler):
        self._dispatcher = dispatcher
        self._handler = handler
        self.active = True

    def release(self) -> None:
        if self.active:
            self._dispatcher._remove(self)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


class EventDispatcher:
    """Delivers DomainEvents to every subscribed handler."""

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    def subscribe(self, handler: EventHandler) -> Subscription:
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        self._subscriptions = [s for s in self._subscriptions if s is not subscription]

    @property
    def handler_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: DomainEvent) -> None:
        for subscription in list(self._subscriptions):
            try:
                await subscription._handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler failed for {type(event).__name__}: {e}",
                    exc_info=True,
                )
