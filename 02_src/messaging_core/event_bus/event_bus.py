"""In-process pub/sub used by the session and the facade."""

from collections import defaultdict
from typing import Any, Callable, Hashable, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


EventHandler = Callable[[Any], None]


class IEventBus(Protocol):
    """Synchronous pub/sub keyed by event kind."""

    def subscribe(self, kind: Hashable, handler: EventHandler) -> None:
        """Subscribe a handler to an event kind."""
        ...

    def unsubscribe(self, kind: Hashable, handler: EventHandler) -> None:
        """Remove a previously subscribed handler."""
        ...

    def publish(self, kind: Hashable, payload: Any = None) -> None:
        """Deliver payload to every handler of kind, in subscription order."""
        ...


class EventBus:
    """Synchronous pub/sub event bus.

    Handlers run on the publisher's turn, one after another, so observers
    see every intermediate value. A failing handler is logged and does not
    stop delivery to the rest.
    """

    def __init__(self, name: str = "event_bus"):
        self._name = name
        self._subscribers: dict[Hashable, list[EventHandler]] = defaultdict(list)

    def subscribe(self, kind: Hashable, handler: EventHandler) -> None:
        """Subscribe a handler to an event kind."""
        self._subscribers[kind].append(handler)

    def unsubscribe(self, kind: Hashable, handler: EventHandler) -> None:
        """Remove a previously subscribed handler."""
        handlers = self._subscribers.get(kind, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, kind: Hashable, payload: Any = None) -> None:
        """Deliver payload to every handler of kind, in subscription order."""
        # Copy so handlers may (un)subscribe while we iterate
        for handler in list(self._subscribers.get(kind, [])):
            try:
                handler(payload)
            except Exception:
                logger.error(
                    "Error in %s handler for %s",
                    self._name,
                    getattr(kind, "value", kind),
                    exc_info=True,
                )

    def clear(self) -> None:
        """Drop all subscriptions."""
        self._subscribers.clear()
