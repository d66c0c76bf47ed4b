"""In-process fan-out of domain events to live subscribers.

Subscribers are duplex connections (WebSocket in production, plain
objects in tests) that come and go at any time.  ``broadcast`` serializes
an event once and sends it to every subscriber that is registered and
open at that moment:

- subscribers unregistered mid-broadcast are skipped, not errored;
- subscribers whose channel is not open are skipped silently;
- a subscriber whose ``send`` raises, or does not finish within
  ``send_timeout`` seconds, is pruned and the broadcast goes on.

Broadcasts are serialized by an internal lock, so every subscriber sees
events in the order the ``broadcast`` calls were made.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from pos_simulator.core.events import BaseEvent, Connected, ConnectedData
from pos_simulator.observability.logger import get_logger
from pos_simulator.observability.metrics import record_broadcast, update_subscribers

logger = get_logger(__name__)


@runtime_checkable
class Subscriber(Protocol):
    """An open connection that accepts serialized events."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, message: str) -> None: ...


class EventBroadcaster:
    """Owns the subscriber set and fans events out to it.

    Parameters
    ----------
    menu_version
        Callable returning the current menu version; sent to each new
        subscriber in its ``connected`` acknowledgement.
    send_timeout
        Seconds one subscriber may take to accept a message.  A stalled
        connection is dropped so it cannot hold up the broadcast lock.
    """

    def __init__(
        self,
        menu_version: Callable[[], int],
        send_timeout: float = 5.0,
    ) -> None:
        self._menu_version = menu_version
        self._send_timeout = send_timeout
        self._subscribers: set[Subscriber] = set()
        self._lock = asyncio.Lock()
        self._events_broadcast = 0

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def register(self, subscriber: Subscriber) -> None:
        """Add *subscriber* and send it the current menu version."""
        async with self._lock:
            ack = Connected(data=ConnectedData(menu_version=self._menu_version()))
            self._subscribers.add(subscriber)
            update_subscribers(len(self._subscribers))
            await self._send(subscriber, ack.to_json())
        logger.info("subscriber_registered", subscribers=len(self._subscribers))

    def unregister(self, subscriber: Subscriber) -> bool:
        """Remove *subscriber*.  Idempotent; returns whether it was present."""
        if subscriber not in self._subscribers:
            return False
        self._subscribers.discard(subscriber)
        update_subscribers(len(self._subscribers))
        logger.info("subscriber_unregistered", subscribers=len(self._subscribers))
        return True

    def is_registered(self, subscriber: Subscriber) -> bool:
        return subscriber in self._subscribers

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def events_broadcast(self) -> int:
        return self._events_broadcast

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def broadcast(self, event: BaseEvent) -> int:
        """Send *event* to every open subscriber.

        Returns the number of subscribers it was delivered to.  Never
        raises on behalf of a subscriber.
        """
        message = event.to_json()
        delivered = 0

        async with self._lock:
            for subscriber in list(self._subscribers):
                if subscriber not in self._subscribers:
                    continue
                if not subscriber.is_open:
                    continue
                if await self._send(subscriber, message):
                    delivered += 1

        self._events_broadcast += 1
        record_broadcast(event.event)
        logger.debug("event_broadcast", event_type=event.event, delivered=delivered)
        return delivered

    async def _send(self, subscriber: Subscriber, message: str) -> bool:
        try:
            await asyncio.wait_for(subscriber.send(message), self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning("subscriber_send_timeout", timeout=self._send_timeout)
            self.unregister(subscriber)
            return False
        except Exception as exc:
            logger.debug("subscriber_send_failed", error=str(exc))
            self.unregister(subscriber)
            return False
        return True
