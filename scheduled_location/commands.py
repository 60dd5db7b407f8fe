"""
Command interface: interval start/stop, immediate request, significant-change
monitoring on/off.

Thread-safe: the Flask request-handler thread only queues commands; the
service loop drains them with ``poll_commands(service)`` so every service
call runs on the loop's single context.
"""

import math
import threading
from collections import deque
from typing import Deque, Optional, Tuple

from scheduled_location.logger import get_logger

log = get_logger("commands")

START_INTERVAL = "start_interval"
STOP_INTERVAL = "stop_interval"
GET_LOCATION = "get_location"
START_SIGNIFICANT = "start_significant"
STOP_SIGNIFICANT = "stop_significant"

_lock = threading.Lock()
_pending: Deque[Tuple[str, Tuple[float, ...]]] = deque()


def set_start_interval(interval: float, accuracy: float) -> None:
    """Queue interval updates every *interval* seconds at *accuracy* meters."""
    _queue(START_INTERVAL, float(interval), float(accuracy))


def set_stop_interval() -> None:
    _queue(STOP_INTERVAL)


def set_get_location(accuracy: float) -> None:
    """Queue a one-shot location request at *accuracy* meters."""
    _queue(GET_LOCATION, float(accuracy))


def set_significant_monitoring(enabled: bool) -> None:
    _queue(START_SIGNIFICANT if enabled else STOP_SIGNIFICANT)


def _queue(name: str, *args: float) -> None:
    with _lock:
        _pending.append((name, args))


def pending_count() -> int:
    with _lock:
        return len(_pending)


def clear() -> None:
    with _lock:
        _pending.clear()


def poll_commands(service) -> int:
    """Run every queued command against *service*, in order. Returns how many ran.

    The queue is swapped out under the lock; commands run outside it so a
    slow service call never blocks the web thread.
    """
    with _lock:
        batch = list(_pending)
        _pending.clear()

    for name, args in batch:
        log.info("CMD %s %s", name, args)
        if name == START_INTERVAL:
            service.start_updating_location_with_interval(*args)
        elif name == STOP_INTERVAL:
            service.stop_updating_location_with_interval()
        elif name == GET_LOCATION:
            service.get_location_with_accuracy(*args)
        elif name == START_SIGNIFICANT:
            service.start_monitoring_significant_location_changes()
        elif name == STOP_SIGNIFICANT:
            service.stop_monitoring_significant_location_changes()
    return len(batch)


def parse_positive(value, name: str) -> Optional[float]:
    """Return *value* as a float if it is a positive number, else None."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        log.debug("Rejected %s=%r", name, value)
        return None
    return number


def parse_accuracy(value) -> Optional[float]:
    """Accuracy in meters; -1 (best available) and up. None if invalid."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < -1:
        return None
    return number
