"""Immediate request handler: one bounded, one-shot poll."""

from typing import Callable, Optional

from scheduled_location.arbiter import LocationArbiter
from scheduled_location.events import EventPublisher, LocationEvent
from scheduled_location.logger import get_logger
from scheduled_location.models import ErrorKind, ImmediateRequest, LocationError
from scheduled_location.power import PowerController
from scheduled_location.state import ServiceState, Timing
from scheduled_location.timers import RoleTimers, TimerRole

log = get_logger("immediate")

NO_LOCATION_RECEIVED = "No location received"


class ImmediateRequestHandler:
    def __init__(
        self,
        state: ServiceState,
        timing: Timing,
        timers: RoleTimers,
        power: PowerController,
        arbiter: LocationArbiter,
        publisher: EventPublisher,
        ensure_updating: Callable[[], None],
    ):
        self._state = state
        self._timing = timing
        self._timers = timers
        self._power = power
        self._arbiter = arbiter
        self._publisher = publisher
        self._ensure_updating = ensure_updating
        self.request: Optional[ImmediateRequest] = None
        # Called once the poll has ended (not on cancel)
        self.on_finished: Optional[Callable[[], None]] = None
        arbiter.on_immediate_satisfied = self._on_satisfied

    def request_location(self, accuracy: float) -> None:
        """Start (or restart) the one-shot poll at *accuracy* meters.

        A request made while a poll is in flight keeps the candidate found so
        far and restarts the timeout.
        """
        if self.request is None:
            self.request = ImmediateRequest(accuracy)
        else:
            self.request.accuracy_threshold = float(accuracy)
        self._arbiter.immediate_request = self.request
        self._state.wanting_immediate = True
        self._power.power_up(accuracy)
        self._ensure_updating()
        self._timers.arm(
            TimerRole.IMMEDIATE_TIMEOUT, self._timing.location_update_timeout, self._on_timeout
        )
        log.info("Immediate location requested at %.0f m", accuracy)

    def _on_satisfied(self, fix) -> None:
        log.debug("Immediate threshold met (%.1f m)", fix.horizontal_accuracy)
        self.finalize()

    def _on_timeout(self) -> None:
        if not self._state.wanting_immediate:
            return
        self.finalize()

    def finalize(self) -> None:
        request = self.request
        fix = request.take_candidate() if request is not None else None
        self._state.wanting_immediate = False
        self._timers.cancel(TimerRole.IMMEDIATE_TIMEOUT)
        self.request = None
        self._arbiter.immediate_request = None
        self._power.power_down_if_idle()
        if self.on_finished is not None:
            self.on_finished()

        if fix is not None:
            log.info("Immediate fix: %.6f, %.6f (+/- %.0f m)", fix.latitude, fix.longitude, fix.horizontal_accuracy)
            self._publisher.publish(LocationEvent.LOCATION_UPDATED, fix)
            self._publisher.publish(LocationEvent.IMMEDIATE_LOCATION_UPDATED, fix)
        elif request is not None and request.failure_reported:
            log.info("Immediate poll ended without a fix (failure already reported)")
        else:
            log.info("Immediate poll ended without a fix")
            self._publisher.publish(
                LocationEvent.LOCATION_FAILED,
                LocationError(ErrorKind.NO_FIX_RECEIVED, NO_LOCATION_RECEIVED),
            )

    def cancel(self) -> None:
        """Drop the in-flight poll without publishing anything."""
        self._state.wanting_immediate = False
        self._timers.cancel(TimerRole.IMMEDIATE_TIMEOUT)
        self.request = None
        self._arbiter.immediate_request = None

    def mark_failure_reported(self) -> None:
        if self.request is not None:
            self.request.failure_reported = True

    def snapshot(self) -> dict:
        request = self.request
        return {
            "active": self._state.wanting_immediate,
            "accuracy": request.accuracy_threshold if request else None,
            "has_candidate": bool(request and request.candidate is not None),
        }
