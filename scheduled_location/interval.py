"""
Interval scheduler: the periodic poll cycle.

Cycle:
  1. Poll: power up at the interval accuracy, make sure the sensor is
     updating, arm the interval timeout.
  2. Finalize (timeout): publish the best fix of the cycle, if any. A cycle
     without a fix is a silent miss.
  3. Next start: ``remaining = interval - (now - cycle_start)``.
       remaining < 0               -> poll again right away
       remaining > keep_alive_time -> keep-alive timer at
                                      keep_alive_time - keep_alive_timer_timeout
       otherwise                   -> start timer at ``remaining``
  4. Keep-alive wake: power up briefly, then on its timeout power down,
     release the lease and redo step 3 with the time that has passed.

A background lease is held from step 3 until the next poll starts, the
keep-alive wake ends, or the scheduler is stopped.
"""

from typing import Callable, Optional

from scheduled_location.events import EventPublisher, LocationEvent
from scheduled_location.lease import Lease, LeaseManager
from scheduled_location.logger import get_logger
from scheduled_location.models import ACCURACY_BEST, ErrorKind, IntervalRequest
from scheduled_location.power import PowerController
from scheduled_location.arbiter import LocationArbiter
from scheduled_location.state import (
    IntervalEvent,
    IntervalPhase,
    IntervalStateMachine,
    ServiceState,
    Timing,
)
from scheduled_location.timers import RoleTimers, TimerRole

log = get_logger("interval")

_INTERVAL_ROLES = (
    TimerRole.INTERVAL_TIMEOUT,
    TimerRole.INTERVAL_START,
    TimerRole.KEEP_ALIVE,
    TimerRole.KEEP_ALIVE_TIMEOUT,
)


class IntervalScheduler:
    def __init__(
        self,
        state: ServiceState,
        timing: Timing,
        timers: RoleTimers,
        power: PowerController,
        arbiter: LocationArbiter,
        publisher: EventPublisher,
        leases: LeaseManager,
        ensure_updating: Callable[[], None],
        clock: Callable[[], float],
    ):
        self._state = state
        self._timing = timing
        self._timers = timers
        self._power = power
        self._arbiter = arbiter
        self._publisher = publisher
        self._leases = leases
        self._ensure_updating = ensure_updating
        self._clock = clock
        self.machine = IntervalStateMachine()
        self.request: Optional[IntervalRequest] = None
        self._lease: Optional[Lease] = None

    @property
    def phase(self) -> IntervalPhase:
        return self.machine.phase

    @property
    def lease(self) -> Optional[Lease]:
        return self._lease

    # ── public ───────────────────────────────────────────────────────

    def start(self, interval: float, accuracy: float) -> None:
        self.request = IntervalRequest(interval, accuracy)
        self._arbiter.interval_request = self.request
        for role in _INTERVAL_ROLES:
            self._timers.cancel(role)
        self.machine.dispatch(IntervalEvent.START)
        log.info("Interval updates started: every %.0f s at %.0f m", interval, accuracy)
        self._poll()

    def stop(self) -> None:
        self._state.wanting_interval = False
        self._state.keep_alive_wake = False
        for role in _INTERVAL_ROLES:
            self._timers.cancel(role)
        if self.request is not None:
            self.request.take_candidate()
        self.request = None
        self._arbiter.interval_request = None
        self._release_lease()
        self.machine.dispatch(IntervalEvent.STOP)
        if self._state.gps_powered_up:
            self._power.power_down_if_idle()
        log.info("Interval updates stopped")

    # ── poll ─────────────────────────────────────────────────────────

    def _poll(self) -> None:
        self._release_lease()
        request = self.request
        self._state.wanting_interval = True
        request.begin_cycle(self._clock())
        self._power.power_up(request.accuracy_threshold)
        self._ensure_updating()
        self._timers.arm(
            TimerRole.INTERVAL_TIMEOUT, self._timing.location_update_timeout, self._on_poll_timeout
        )
        log.debug("Interval poll started at %.3f", request.cycle_start_time)

    def _on_poll_timeout(self) -> None:
        if self.machine.phase != IntervalPhase.POLLING or self.request is None:
            log.debug("Ignoring interval timeout in phase %s", self.machine.phase.value)
            return
        self.finalize()

    def finalize(self) -> None:
        fix = self.request.take_candidate()
        self._state.wanting_interval = False
        self._timers.cancel(TimerRole.INTERVAL_TIMEOUT)
        self._schedule_next_start()
        self._power.power_down_if_idle()

        if fix is None:
            log.info("Interval poll ended without a fix (%s)", ErrorKind.SILENT_MISS.value)
            return
        log.info("Interval fix: %.6f, %.6f (+/- %.0f m)", fix.latitude, fix.longitude, fix.horizontal_accuracy)
        self._publisher.publish(LocationEvent.LOCATION_UPDATED, fix)
        self._publisher.publish(LocationEvent.INTERVAL_LOCATION_UPDATED, fix)

    # ── next start / keep-alive ──────────────────────────────────────

    def _schedule_next_start(self) -> None:
        self._timers.cancel(TimerRole.KEEP_ALIVE)
        self._timers.cancel(TimerRole.INTERVAL_START)
        request = self.request
        now = self._clock()
        started = request.cycle_start_time if request.cycle_start_time is not None else now
        remaining = request.interval - (now - started)

        if remaining < 0:
            log.info("Interval cycle overran by %.1f s; polling again", -remaining)
            self.machine.dispatch(IntervalEvent.OVERRUN)
            self._poll()
            return

        self._acquire_lease()
        if remaining > self._timing.keep_alive_time:
            delay = self._timing.keep_alive_time - self._timing.keep_alive_timer_timeout
            self._timers.arm(TimerRole.KEEP_ALIVE, delay, self._on_keep_alive)
            self.machine.dispatch(IntervalEvent.SCHEDULE_KEEP_ALIVE)
            log.debug("Next poll in %.1f s; keep-alive in %.1f s", remaining, delay)
        else:
            self._timers.arm(TimerRole.INTERVAL_START, remaining, self._on_start_timer)
            self.machine.dispatch(IntervalEvent.SCHEDULE_DIRECT)
            log.debug("Next poll in %.1f s", remaining)

    def _on_start_timer(self) -> None:
        if self.machine.phase != IntervalPhase.COOLDOWN_DIRECT:
            log.debug("Ignoring start timer in phase %s", self.machine.phase.value)
            return
        self.machine.dispatch(IntervalEvent.START_TIMER_FIRED)
        self._poll()

    def _on_keep_alive(self) -> None:
        if self.machine.phase != IntervalPhase.COOLDOWN_KEEP_ALIVE:
            log.debug("Ignoring keep-alive in phase %s", self.machine.phase.value)
            return
        self._timers.cancel(TimerRole.KEEP_ALIVE)
        self._timers.cancel(TimerRole.KEEP_ALIVE_TIMEOUT)
        self.machine.dispatch(IntervalEvent.KEEP_ALIVE_FIRED)
        self._state.keep_alive_wake = True
        # Only to keep the process running; no fix is collected
        self._power.power_up(ACCURACY_BEST)
        self._timers.arm(
            TimerRole.KEEP_ALIVE_TIMEOUT, self._timing.keep_alive_timer_timeout, self._on_keep_alive_timeout
        )
        log.debug("Keep-alive wake")

    def _on_keep_alive_timeout(self) -> None:
        if self.machine.phase != IntervalPhase.KEEP_ALIVE_WAKE:
            return
        self._timers.cancel(TimerRole.KEEP_ALIVE)
        self._timers.cancel(TimerRole.KEEP_ALIVE_TIMEOUT)
        self._state.keep_alive_wake = False
        self._power.power_down_if_idle()
        self._release_lease()
        self._schedule_next_start()

    # ── lease ────────────────────────────────────────────────────────

    def hold_lease_if_waiting(self) -> None:
        """Take a lease for a cooldown that started without one."""
        if self.machine.phase in (IntervalPhase.COOLDOWN_DIRECT, IntervalPhase.COOLDOWN_KEEP_ALIVE):
            self._acquire_lease()

    def _acquire_lease(self) -> None:
        # An in-flight immediate poll keeps the sensor (and process) busy
        if self._lease is not None or self._state.wanting_immediate:
            return
        self._lease = self._leases.acquire(self._on_lease_expired)

    def _release_lease(self) -> None:
        lease, self._lease = self._lease, None
        if lease is not None:
            lease.release()

    def _on_lease_expired(self, lease: Lease) -> None:
        if lease is self._lease:
            self._lease = None

    def snapshot(self) -> dict:
        request = self.request
        return {
            "phase": self.machine.phase.value,
            "interval": request.interval if request else None,
            "accuracy": request.accuracy_threshold if request else None,
            "cycle_start_time": request.cycle_start_time if request else None,
            "has_candidate": bool(request and request.candidate is not None),
            "lease_held": self._lease is not None,
        }
