"""
Change feed: subscribe-by-room stream of ChangeEvents.

Delivery contract (all a subscriber may rely on): every event is eventually delivered, possibly more than once,
with no ordering guarantee across entity kinds. Subscriptions can drop at any time; a dropped subscription
receives nothing more and the subscriber is expected to resync from scratch.

ChangeFeedHub is the in-process implementation. Each subscription owns a queue, drained by the subscriber's own
event loop (a client is single-threaded), so publishing never runs subscriber code.
"""

import logging
import queue
import threading
from typing import Protocol
from uuid import UUID

from fast_eyes.core.models import ChangeEvent

logger = logging.getLogger(__name__)


class Subscription:
    """Events of one room, for one subscriber."""

    def __init__(self, room_id: UUID) -> None:
        self.room_id = room_id
        self._queue: queue.SimpleQueue[ChangeEvent] = queue.SimpleQueue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: ChangeEvent) -> None:
        if not self.closed:
            self._queue.put(event)

    def drain(self) -> list[ChangeEvent]:
        """Everything delivered so far (without blocking)."""
        events: list[ChangeEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        self._closed.set()


class ChangeFeed(Protocol):
    """Realtime transport as seen from both ends."""

    def subscribe(self, room_id: UUID) -> Subscription: ...

    def unsubscribe(self, subscription: Subscription) -> None: ...

    def publish(self, event: ChangeEvent) -> None: ...


class ChangeFeedHub:
    """Thread-safe, in-process fan-out of change events to the subscriptions of a room."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[UUID, list[Subscription]] = {}

    def subscribe(self, room_id: UUID) -> Subscription:
        subscription = Subscription(room_id)
        with self._lock:
            self._subscriptions.setdefault(room_id, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        with self._lock:
            room_subscriptions = self._subscriptions.get(subscription.room_id, [])
            if subscription in room_subscriptions:
                room_subscriptions.remove(subscription)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = list(self._subscriptions.get(event.room_id, []))
        for subscription in targets:
            subscription.deliver(event)

    def disconnect(self, room_id: UUID) -> None:
        """Drop every subscription of a room (what a transport outage looks like to subscribers)."""
        with self._lock:
            dropped = self._subscriptions.pop(room_id, [])
        for subscription in dropped:
            subscription.close()
        if dropped:
            logger.warning(f"Dropped {len(dropped)} subscription(s) of room {room_id}")

    def subscriber_count(self, room_id: UUID) -> int:
        with self._lock:
            return len(self._subscriptions.get(room_id, []))
