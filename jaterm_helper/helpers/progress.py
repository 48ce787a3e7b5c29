"""Process-wide broadcast of file write progress."""

from __future__ import annotations

from collections.abc import Callable
import logging

from .types import WriteProgress

_LOGGER = logging.getLogger(__name__)

ProgressHandler = Callable[[WriteProgress], None]


class ProgressBus:
    """Fan out write progress events to every subscriber.

    Subscribers filter by path themselves; the bus is shared by all writes.
    """

    def __init__(self) -> None:
        """Initialize an empty bus."""
        self._handlers: list[ProgressHandler] = []

    @property
    def subscriber_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._handlers)

    def subscribe(self, handler: ProgressHandler) -> Callable[[], None]:
        """Register a handler and return the function that removes it."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                _LOGGER.debug("Progress handler already removed: %s", handler)

        return _unsubscribe

    def publish(self, event: WriteProgress) -> None:
        """Deliver an event to all current subscribers.

        A handler unsubscribed by an earlier handler during this delivery
        does not receive the event.
        """
        for handler in list(self._handlers):
            if handler not in self._handlers:
                continue
            try:
                handler(event)
            except Exception:
                _LOGGER.exception("Progress handler failed for %s", event.path)
