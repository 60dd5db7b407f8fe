"""
Process-wide service flags and the interval scheduler's phase machine.
Phases: IDLE, POLLING, COOLDOWN_DIRECT, COOLDOWN_KEEP_ALIVE, KEEP_ALIVE_WAKE.
Events drive transitions; no sensor or timer dependency.
"""
from dataclasses import dataclass
from enum import Enum


@dataclass
class ServiceState:
    gps_powered_up: bool = False
    updating_location: bool = False
    wanting_immediate: bool = False
    wanting_interval: bool = False
    # Interval keep-alive wake in progress: powered without wanting a fix
    keep_alive_wake: bool = False

    @property
    def wanting_location(self) -> bool:
        return self.wanting_immediate or self.wanting_interval


class IntervalPhase(Enum):
    IDLE = "idle"
    POLLING = "polling"
    COOLDOWN_DIRECT = "cooldown_direct"
    COOLDOWN_KEEP_ALIVE = "cooldown_keep_alive"
    KEEP_ALIVE_WAKE = "keep_alive_wake"


class IntervalEvent(Enum):
    START = "start"
    OVERRUN = "overrun"  # cycle took longer than the interval; poll again now
    SCHEDULE_DIRECT = "schedule_direct"
    SCHEDULE_KEEP_ALIVE = "schedule_keep_alive"
    START_TIMER_FIRED = "start_timer_fired"
    KEEP_ALIVE_FIRED = "keep_alive_fired"
    STOP = "stop"


_TRANSITIONS = {
    (IntervalPhase.IDLE, IntervalEvent.START): IntervalPhase.POLLING,
    # Restarting while active begins a fresh poll with the new settings
    (IntervalPhase.POLLING, IntervalEvent.START): IntervalPhase.POLLING,
    (IntervalPhase.COOLDOWN_DIRECT, IntervalEvent.START): IntervalPhase.POLLING,
    (IntervalPhase.COOLDOWN_KEEP_ALIVE, IntervalEvent.START): IntervalPhase.POLLING,
    (IntervalPhase.KEEP_ALIVE_WAKE, IntervalEvent.START): IntervalPhase.POLLING,
    (IntervalPhase.POLLING, IntervalEvent.OVERRUN): IntervalPhase.POLLING,
    (IntervalPhase.POLLING, IntervalEvent.SCHEDULE_DIRECT): IntervalPhase.COOLDOWN_DIRECT,
    (IntervalPhase.POLLING, IntervalEvent.SCHEDULE_KEEP_ALIVE): IntervalPhase.COOLDOWN_KEEP_ALIVE,
    (IntervalPhase.COOLDOWN_DIRECT, IntervalEvent.START_TIMER_FIRED): IntervalPhase.POLLING,
    (IntervalPhase.COOLDOWN_KEEP_ALIVE, IntervalEvent.KEEP_ALIVE_FIRED): IntervalPhase.KEEP_ALIVE_WAKE,
    (IntervalPhase.KEEP_ALIVE_WAKE, IntervalEvent.OVERRUN): IntervalPhase.POLLING,
    (IntervalPhase.KEEP_ALIVE_WAKE, IntervalEvent.SCHEDULE_DIRECT): IntervalPhase.COOLDOWN_DIRECT,
    (IntervalPhase.KEEP_ALIVE_WAKE, IntervalEvent.SCHEDULE_KEEP_ALIVE): IntervalPhase.COOLDOWN_KEEP_ALIVE,
}


class IntervalStateMachine:
    """Single source of truth for the interval cycle phase."""

    def __init__(self):
        self._phase = IntervalPhase.IDLE

    @property
    def phase(self) -> IntervalPhase:
        return self._phase

    @property
    def active(self) -> bool:
        return self._phase != IntervalPhase.IDLE

    def dispatch(self, event: IntervalEvent) -> IntervalPhase:
        """
        Process event and return the new phase.
        Unknown (phase, event) leaves the phase unchanged.
        """
        if event == IntervalEvent.STOP:
            self._phase = IntervalPhase.IDLE
            return self._phase
        new_phase = _TRANSITIONS.get((self._phase, event))
        if new_phase is not None:
            self._phase = new_phase
        return self._phase

    def accepts(self, event: IntervalEvent) -> bool:
        return event == IntervalEvent.STOP or (self._phase, event) in _TRANSITIONS


@dataclass
class Timing:
    """Timeouts shared by every component, in seconds. Mutable at runtime."""

    location_update_timeout: float = 5.0
    keep_alive_timer_timeout: float = 1.0
    keep_alive_time: float = 300.0
