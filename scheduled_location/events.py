"""
Event publisher: the only way results leave the core.

Subscribers register per event (or for everything). Delivery is synchronous
on the publishing context. A subscriber that raises is logged and skipped.
"""

from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from scheduled_location.logger import get_logger

log = get_logger("events")

Subscriber = Callable[["LocationEvent", Any], None]


class LocationEvent(Enum):
    LOCATION_UPDATED = "LocationUpdated"
    INTERVAL_LOCATION_UPDATED = "IntervalLocationUpdated"
    IMMEDIATE_LOCATION_UPDATED = "ImmediateLocationUpdated"
    LOCATION_FAILED = "LocationFailed"


class EventPublisher:
    def __init__(self) -> None:
        self._subscribers: Dict[Optional[LocationEvent], List[Subscriber]] = {}

    def subscribe(self, event: Optional[LocationEvent], callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for *event* (None = every event). Returns an unsubscribe function."""
        self._subscribers.setdefault(event, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def subscribe_all(self, callback: Subscriber) -> Callable[[], None]:
        return self.subscribe(None, callback)

    def publish(self, event: LocationEvent, payload: Any) -> None:
        log.debug("Publish %s", event.value)
        for callback in list(self._subscribers.get(event, ())) + list(self._subscribers.get(None, ())):
            try:
                callback(event, payload)
            except Exception:
                log.exception("Subscriber %r failed on %s", callback, event.value)


class EventLog:
    """Keeps the most recent events (name, payload, time) for status reporting."""

    def __init__(self, publisher: EventPublisher, clock: Callable[[], float], maxlen: int = 50):
        self._clock = clock
        self._events: Deque[Tuple[float, LocationEvent, Any]] = deque(maxlen=maxlen)
        self._unsubscribe = publisher.subscribe_all(self._record)

    def _record(self, event: LocationEvent, payload: Any) -> None:
        self._events.append((self._clock(), event, payload))

    def close(self) -> None:
        self._unsubscribe()

    def __len__(self) -> int:
        return len(self._events)

    def names(self) -> List[str]:
        return [event.value for _, event, _ in self._events]

    def as_list(self) -> List[dict]:
        out = []
        for t, event, payload in self._events:
            body = payload.as_dict() if hasattr(payload, "as_dict") else payload
            out.append({"time": t, "event": event.value, "payload": body})
        return out
