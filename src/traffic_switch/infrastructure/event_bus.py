"""Switch lifecycle event bus.

``AsyncEventBus`` fans ``DomainEvent`` instances out to subscribers while a
switch is running.  A subscriber that raises is logged and skipped: alerting
or audit hooks must never decide whether traffic moves.

``EventStore`` keeps a bounded tail of published events so a dashboard or a
test can replay what one switch did::

    store = EventStore(max_size=500)
    bus.subscribe_all(store.append)
    ...
    store.for_switch(outcome.switch_id)
"""

from __future__ import annotations

import inspect
import logging
import threading
from collections import defaultdict, deque
from collections.abc import Callable, Sequence
from typing import Any

from traffic_switch.domain.events import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], Any]


def event_switch_id(event: DomainEvent) -> str:
    """Switch id an event belongs to, or ``""`` for switch-less events."""
    switch_id = getattr(event, "switch_id", "")
    if switch_id:
        return switch_id
    outcome = getattr(event, "outcome", None)
    return getattr(outcome, "switch_id", "") if outcome is not None else ""


# ===================================================================== #
#  Bus                                                                   #
# ===================================================================== #

class AsyncEventBus:
    """Publishes lifecycle events to sync or async subscribers.

    Subscribers registered with ``subscribe_all`` see every event before the
    type-specific ones.  Delivery is sequential and awaited, so events reach
    a subscriber in the order the orchestrator emitted them.
    """

    def __init__(self) -> None:
        self._by_type: dict[type[DomainEvent], list[Handler]] = defaultdict(list)
        self._catch_all: list[Handler] = []

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        self._by_type[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        self._catch_all.append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> bool:
        """Drop *handler* from *event_type*; ``False`` if it was not there."""
        handlers = self._by_type.get(event_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    async def publish(self, event: DomainEvent) -> None:
        targets = [*self._catch_all, *self._by_type.get(type(event), ())]
        for handler in targets:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Subscriber %r failed on %s (switch %s)",
                    handler, type(event).__name__, event_switch_id(event) or "-",
                )

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        if event_type is not None:
            return len(self._by_type.get(event_type, ()))
        return len(self._catch_all) + sum(len(h) for h in self._by_type.values())

    def clear(self) -> None:
        self._by_type.clear()
        self._catch_all.clear()


# ===================================================================== #
#  Store                                                                 #
# ===================================================================== #

class EventStore:
    """Bounded, thread-safe record of published events.

    Parameters
    ----------
    max_size:
        Number of most recent events kept.  ``0`` keeps everything.
    """

    def __init__(self, max_size: int = 0) -> None:
        self._events: deque[DomainEvent] = deque(maxlen=max_size or None)
        self._lock = threading.Lock()

    def append(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        event_type: type[DomainEvent] | None = None,
        since: float | None = None,
        limit: int = 0,
    ) -> Sequence[DomainEvent]:
        """Events in publish order, optionally filtered.

        Parameters
        ----------
        event_type:
            Keep only instances of this type.
        since:
            Keep only events with ``timestamp >= since``.
        limit:
            Keep only the last *limit* matches (``0`` for all).
        """
        with self._lock:
            snapshot = list(self._events)
        matches = [
            e for e in snapshot
            if (event_type is None or isinstance(e, event_type))
            and (since is None or e.timestamp >= since)
        ]
        return matches[-limit:] if limit > 0 else matches

    def for_switch(self, switch_id: str) -> Sequence[DomainEvent]:
        """Every stored event emitted by the switch *switch_id*."""
        return [e for e in self.query() if event_switch_id(e) == switch_id]

    @property
    def latest(self) -> DomainEvent | None:
        with self._lock:
            return self._events[-1] if self._events else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
