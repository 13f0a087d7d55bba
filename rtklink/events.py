"""Typed notification channels.

Each notification category gets its own ``Channel[T]`` so listeners receive
one payload type and never need to inspect what they were handed:

    receiver.position_updated.subscribe(lambda update: print(update.position))
    client.errors.subscribe(lambda message: print("NTRIP error:", message))

Listeners are plain callables invoked synchronously, in subscription order,
from ``emit``. A listener that raises is logged and does not prevent the
remaining listeners from running.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Channel(Generic[T]):
    """A single-category observer list."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[[T], None]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Callable[[T], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, payload: T) -> None:
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener %r on channel %s failed", listener, self.name)

    def clear(self) -> None:
        self._listeners.clear()
