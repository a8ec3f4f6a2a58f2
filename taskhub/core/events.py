"""Explicit publish/subscribe channel for app-level events.

Subscribers own an asyncio.Queue; publish() puts the event on every
subscriber queue in subscription order, so each subscriber sees events in
the order they were published.
"""

import asyncio
import logging

from pydantic import BaseModel


logger = logging.getLogger(__name__)


class EventBus:
    """Fan an event out to every subscribed queue."""

    def __init__(self, *, maxsize: int = 0) -> None:
        self._maxsize = maxsize
        self._subscribers: list[asyncio.Queue[BaseModel]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[BaseModel]:
        """Register a new subscriber and return its queue."""
        queue: asyncio.Queue[BaseModel] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[BaseModel]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, event: BaseModel) -> int:
        """Deliver event to all subscribers.

        Args:
            event: Event model to deliver

        Returns:
            Number of subscribers the event was delivered to
        """
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping %s for a full subscriber queue", type(event).__name__)

        logger.debug("Published %s to %d subscriber(s)", type(event).__name__, delivered)
        return delivered
