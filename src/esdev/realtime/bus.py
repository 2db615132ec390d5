"""Change bus — async broadcast of file changes to reload-channel clients.

Each connected browser holds one ``Subscription`` backed by its own
bounded ``asyncio.Queue``.  ``publish()`` puts the event into every open
subscription's queue without awaiting, so a slow client can never stall
delivery to the others.

Thread safety:
    - ChangeEvent is a frozen dataclass (immutable, safe to share)
    - ChangeBus uses a Lock to protect the subscriber set; ``publish``
      iterates a snapshot taken under the lock
    - ``publish`` must run on the event loop thread that owns the queues
      (the watcher hands events over with ``call_soon_threadsafe``)
"""

import asyncio
import itertools
import logging
import threading
from collections.abc import AsyncIterator
from enum import Enum

from esdev.errors import WatchTransportError
from esdev.realtime.events import ChangeEvent

logger = logging.getLogger("esdev.watch")

_ids = itertools.count(1)


class SubscriptionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Subscription:
    """One client's view of the change bus.

    Iterate it to receive events; iteration ends when the subscription is
    closed by the bus (shutdown or overflow).
    """

    __slots__ = ("_queue", "id", "state")

    def __init__(self, maxsize: int = 256) -> None:
        self.id = next(_ids)
        self.state = SubscriptionState.CONNECTING
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=maxsize)

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, state={self.state.value})"

    @property
    def pending(self) -> int:
        """Events queued but not yet consumed."""
        return self._queue.qsize()

    def deliver(self, event: ChangeEvent) -> None:
        """Queue *event* without blocking.

        Raises:
            WatchTransportError: The subscription is closed or its queue is full.
        """
        if self.state is not SubscriptionState.OPEN:
            msg = f"{self!r} is not open"
            raise WatchTransportError(msg)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as exc:
            msg = f"{self!r} fell {self._queue.maxsize} events behind"
            raise WatchTransportError(msg) from exc

    def close(self) -> None:
        """Mark closed and wake the consumer so its iteration ends."""
        if self.state is SubscriptionState.CLOSED:
            return
        self.state = SubscriptionState.CLOSED
        # Make room for the sentinel; the client reloads on reconnect anyway.
        while self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ChangeEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class ChangeBus:
    """Broadcast channel for file change events.

    Usage in the reload endpoint::

        return SSEResponse(EventStream(bus.subscribe()))

    Wrapping ``subscribe()`` in another generator would delay the
    unsubscribe until that outer generator is finalized.
    """

    __slots__ = ("_lock", "_queue_size", "_subscribers")

    def __init__(self, queue_size: int = 256) -> None:
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()
        self._queue_size = queue_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def connect(self) -> Subscription:
        """Register a new subscription and mark it open."""
        subscription = Subscription(self._queue_size)
        with self._lock:
            self._subscribers.add(subscription)
        subscription.state = SubscriptionState.OPEN
        logger.debug("Reload client %d connected", subscription.id)
        return subscription

    def disconnect(self, subscription: Subscription) -> None:
        """Remove *subscription* and close it.  Safe to call twice."""
        with self._lock:
            self._subscribers.discard(subscription)
        subscription.close()
        logger.debug("Reload client %d disconnected", subscription.id)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver *event* to every open subscription.

        A subscription that cannot take the event is dropped; the rest are
        unaffected.  Returns the number of subscriptions that received it.
        """
        with self._lock:
            subscribers = tuple(self._subscribers)

        delivered = 0
        for subscription in subscribers:
            try:
                subscription.deliver(event)
            except WatchTransportError as exc:
                logger.warning("Dropping reload client: %s", exc)
                self.disconnect(subscription)
            else:
                delivered += 1
        return delivered

    async def subscribe(self) -> AsyncIterator[ChangeEvent]:
        """Subscribe to change events.

        The subscription is removed as soon as the iterator exits, whether
        the bus closed it or the consumer was cancelled on disconnect.
        """
        subscription = self.connect()
        try:
            async for event in subscription:
                yield event
        finally:
            self.disconnect(subscription)

    def close(self) -> None:
        """Close every subscription (server shutdown)."""
        with self._lock:
            subscribers = tuple(self._subscribers)
            self._subscribers.clear()
        for subscription in subscribers:
            subscription.close()
