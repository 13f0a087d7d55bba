"""Manages active WebSocket subscriber queues and message broadcasting."""

import asyncio

__all__ = ["Broadcaster"]


def _enqueue_message(queue: asyncio.Queue[str], message: str) -> None:
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(message)


class Broadcaster:
    """Fans JSON messages out to bounded per-subscriber queues.

    Notifications are emitted on the event loop thread, so queues are filled
    directly. A full queue drops its oldest message, so a slow client never
    holds up the receiver or the correction stream.
    """

    def __init__(self, queue_size: int = 10):
        self.queue_size = queue_size
        self._queues: list[asyncio.Queue[str]] = []

    def __len__(self) -> int:
        return len(self._queues)

    def add_subscriber(self) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self.queue_size)
        self._queues.append(queue)
        return queue

    def remove_subscriber(self, queue: asyncio.Queue[str]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def broadcast(self, message: str) -> None:
        for queue in list(self._queues):
            _enqueue_message(queue, message)
