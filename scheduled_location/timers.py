"""
Timer scheduling on a single logical execution context.

Nothing here spawns threads. The service loop (or a test) calls
``TimerScheduler.run_due()`` and every due callback fires on the caller's
context, in deadline order, with ties broken by scheduling order.

Roles:
  The core owns five named timers (``TimerRole``). ``RoleTimers`` keeps at
  most one live handle per role; re-arming a role cancels its previous handle.

Virtual time:
  ``ManualClock`` plus ``TimerScheduler.advance()`` run the same code
  deterministically. Each timer fires with the clock set to its own deadline.
"""

import heapq
import itertools
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from scheduled_location.logger import get_logger

log = get_logger("timers")


class TimerRole(Enum):
    INTERVAL_TIMEOUT = "interval_timeout"
    INTERVAL_START = "interval_start"
    IMMEDIATE_TIMEOUT = "immediate_timeout"
    KEEP_ALIVE = "keep_alive"
    KEEP_ALIVE_TIMEOUT = "keep_alive_timeout"


class ManualClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def __call__(self) -> float:
        return self._now

    def set(self, t: float) -> None:
        if t < self._now:
            raise ValueError(f"Clock cannot move backwards ({t} < {self._now})")
        self._now = float(t)


class TimerHandle:
    """Cancellable handle for one scheduled callback."""

    __slots__ = ("due", "callback", "label", "_cancelled", "_fired")

    def __init__(self, due: float, callback: Callable[[], None], label: str = ""):
        self.due = due
        self.callback = callback
        self.label = label
        self._cancelled = False
        self._fired = False

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._fired)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    def cancel(self) -> None:
        """Cancel the timer. No-op if already cancelled or fired."""
        if self.active:
            self._cancelled = True

    def _fire(self) -> None:
        self._fired = True
        self.callback()

    def __repr__(self) -> str:
        state = "active" if self.active else ("fired" if self._fired else "cancelled")
        return f"TimerHandle({self.label or '?'} due={self.due:.3f} {state})"


class TimerScheduler:
    """Deadline-ordered timer queue drained by ``run_due()``.

    Parameters
    ----------
    clock : callable, optional
        Returns the current time in seconds. Defaults to ``time.time`` so
        fix timestamps from a real sensor are comparable with ``now()``.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.time
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._clock()

    def schedule(
        self, delay: float, callback: Callable[[], None], label: str = ""
    ) -> TimerHandle:
        """Schedule *callback* after *delay* seconds (negative delay = now)."""
        handle = TimerHandle(self.now() + max(0.0, float(delay)), callback, label)
        heapq.heappush(self._heap, (handle.due, next(self._seq), handle))
        return handle

    def _drop_dead(self) -> None:
        while self._heap and not self._heap[0][2].active:
            heapq.heappop(self._heap)

    def next_due(self) -> Optional[float]:
        """Deadline of the earliest live timer, or None."""
        self._drop_dead()
        return self._heap[0][0] if self._heap else None

    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if h.active)

    def run_due(self) -> int:
        """Fire every timer whose deadline has passed. Returns the count fired.

        Timers scheduled by a callback with zero delay fire in the same call.
        """
        fired = 0
        while True:
            self._drop_dead()
            if not self._heap or self._heap[0][0] > self.now():
                return fired
            _, _, handle = heapq.heappop(self._heap)
            handle._fire()
            fired += 1

    def advance(self, seconds: float) -> int:
        """Move a ``ManualClock`` forward by *seconds*, firing timers on the way."""
        if not isinstance(self._clock, ManualClock):
            raise TypeError("advance() needs a ManualClock")
        target = self.now() + seconds
        fired = 0
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            self._clock.set(max(due, self.now()))
            fired += self.run_due()
        self._clock.set(target)
        return fired + self.run_due()


class RoleTimers:
    """One live timer per ``TimerRole`` on top of a ``TimerScheduler``."""

    def __init__(self, scheduler: TimerScheduler) -> None:
        self._scheduler = scheduler
        self._handles: Dict[TimerRole, TimerHandle] = {}

    def arm(self, role: TimerRole, delay: float, callback: Callable[[], None]) -> TimerHandle:
        self.cancel(role)
        handle = self._scheduler.schedule(delay, callback, label=role.value)
        self._handles[role] = handle
        log.debug("Armed %s for %.3f s", role.value, delay)
        return handle

    def cancel(self, role: TimerRole) -> None:
        handle = self._handles.pop(role, None)
        if handle is not None:
            handle.cancel()

    def is_armed(self, role: TimerRole) -> bool:
        handle = self._handles.get(role)
        return handle is not None and handle.active

    def get(self, role: TimerRole) -> Optional[TimerHandle]:
        handle = self._handles.get(role)
        return handle if handle is not None and handle.active else None

    def armed_roles(self) -> List[TimerRole]:
        return [role for role in TimerRole if self.is_armed(role)]
