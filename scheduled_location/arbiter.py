"""
Location arbiter: route each incoming fix to the active requests.

Stale fixes (older than the update timeout) and invalid ones (negative
accuracy) are dropped. Each active request keeps its own best candidate;
one fix can become the candidate of both. The immediate request is
offered first so an early accept can finish it before the interval
request sees the same fix.
"""

from typing import Callable, Iterable, Optional

from scheduled_location.logger import get_logger
from scheduled_location.models import ImmediateRequest, IntervalRequest, LocationFix
from scheduled_location.state import ServiceState, Timing

log = get_logger("arbiter")


class LocationArbiter:
    def __init__(
        self,
        state: ServiceState,
        clock: Callable[[], float],
        timing: Timing,
    ):
        self._state = state
        self._clock = clock
        self.timing = timing
        self.interval_request: Optional[IntervalRequest] = None
        self.immediate_request: Optional[ImmediateRequest] = None
        # Called with the fix when the immediate threshold is met
        self.on_immediate_satisfied: Optional[Callable[[LocationFix], None]] = None

    def is_stale(self, fix: LocationFix, now: float) -> bool:
        return fix.age(now) > self.timing.location_update_timeout

    def handle_fixes(self, fixes: Iterable[LocationFix]) -> None:
        if not self._state.wanting_location:
            return
        for fix in fixes:
            self.handle_fix(fix)

    def handle_fix(self, fix: LocationFix) -> None:
        now = self._clock()
        if not self._state.wanting_location:
            return
        if not fix.valid:
            log.debug("Dropping invalid fix (accuracy %.1f)", fix.horizontal_accuracy)
            return
        if self.is_stale(fix, now):
            log.debug("Dropping stale fix (%.1f s old)", fix.age(now))
            return

        immediate = self.immediate_request
        if self._state.wanting_immediate and immediate is not None:
            if immediate.offer(fix) and immediate.satisfied_by(fix):
                if self.on_immediate_satisfied is not None:
                    self.on_immediate_satisfied(fix)

        interval = self.interval_request
        if self._state.wanting_interval and interval is not None:
            interval.offer(fix)
