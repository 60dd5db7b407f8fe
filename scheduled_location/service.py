"""
ScheduledLocationService: the public face of the scheduling core.

Wires the power controller, arbiter, interval scheduler and immediate
handler around one location provider, one timer scheduler and one lease
manager, and acts as the provider's delegate.

Public operations:
    start_updating_location_with_interval(interval, accuracy)
    stop_updating_location_with_interval()
    get_location_with_accuracy(accuracy)
    start_monitoring_significant_location_changes()
    stop_monitoring_significant_location_changes()

Results only leave through ``publisher`` (see ``events.LocationEvent``).
"""

from typing import List, Optional

from scheduled_location.arbiter import LocationArbiter
from scheduled_location.events import EventPublisher, LocationEvent
from scheduled_location.immediate import ImmediateRequestHandler
from scheduled_location.interval import IntervalScheduler
from scheduled_location.lease import LeaseManager, TimedLeaseManager
from scheduled_location.logger import get_logger
from scheduled_location.models import (
    ERROR_DENIED,
    ERROR_SERVICES_UNAVAILABLE,
    AuthorizationStatus,
    ErrorKind,
    LocationError,
    LocationFix,
)
from scheduled_location.power import PowerController
from scheduled_location.state import ServiceState, Timing
from scheduled_location.timers import RoleTimers, TimerScheduler

log = get_logger("service")

SERVICES_NOT_ENABLED = "Location services are not enabled."


class ScheduledLocationService:
    """Coordinates interval and immediate polls over one shared sensor.

    Parameters
    ----------
    provider : LocationProvider
        Sensor access; this service registers itself as its delegate.
    scheduler : TimerScheduler
        Timer queue; its clock is also used to judge fix age.
    leases : LeaseManager, optional
        Background-execution grants. Defaults to a ``TimedLeaseManager``.
    timing : Timing, optional
        Timeouts; defaults to 5 s poll timeout, 1 s keep-alive wake, 300 s
        keep-alive time.
    publisher : EventPublisher, optional
        Where results go. A fresh publisher is created if omitted.
    """

    def __init__(
        self,
        provider,
        scheduler: TimerScheduler,
        leases: Optional[LeaseManager] = None,
        timing: Optional[Timing] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.provider = provider
        self.scheduler = scheduler
        self.state = ServiceState()
        self.timing = timing or Timing()
        self.publisher = publisher or EventPublisher()
        self.leases = leases or TimedLeaseManager(scheduler)
        self.timers = RoleTimers(scheduler)
        self.power = PowerController(provider, self.state)
        self.arbiter = LocationArbiter(self.state, scheduler.now, self.timing)
        self.interval = IntervalScheduler(
            self.state, self.timing, self.timers, self.power, self.arbiter,
            self.publisher, self.leases, self.ensure_updating, scheduler.now,
        )
        self.immediate = ImmediateRequestHandler(
            self.state, self.timing, self.timers, self.power, self.arbiter,
            self.publisher, self.ensure_updating,
        )
        self.immediate.on_finished = self.interval.hold_lease_if_waiting
        self.monitoring_significant = False
        self._authorization_halted = False
        provider.set_delegate(self)

    # ── public operations ────────────────────────────────────────────

    def start_updating_location_with_interval(self, interval: float, accuracy: float) -> None:
        self.interval.start(interval, accuracy)

    def stop_updating_location_with_interval(self) -> None:
        self.interval.stop()

    def get_location_with_accuracy(self, accuracy: float) -> None:
        self.immediate.request_location(accuracy)

    def start_monitoring_significant_location_changes(self) -> None:
        self.monitoring_significant = True
        self.provider.start_monitoring_significant_changes()

    def stop_monitoring_significant_location_changes(self) -> None:
        self.monitoring_significant = False
        self.provider.stop_monitoring_significant_changes()

    def shutdown(self) -> None:
        """Stop every request, release the lease and stop the sensor. Publishes nothing."""
        self.interval.stop()
        self.immediate.cancel()
        self.power.power_down()
        if self.state.updating_location:
            self.provider.stop_updating()
            self.state.updating_location = False
        if self.monitoring_significant:
            self.stop_monitoring_significant_location_changes()
        log.info("Service shut down")

    # ── shared sensor activation ─────────────────────────────────────

    def ensure_updating(self) -> None:
        if self.state.updating_location:
            return
        status = self.provider.current_authorization_status()
        if status.blocks_updates:
            self._halt_for_authorization(ERROR_SERVICES_UNAVAILABLE, SERVICES_NOT_ENABLED)
            return
        if status == AuthorizationStatus.NOT_DETERMINED:
            # Updates start anyway; fixes arrive once the user answers
            self.provider.request_authorization()
        self.provider.start_updating()
        self.state.updating_location = True
        self._authorization_halted = False
        log.info("Location updates started (authorization: %s)", status.value)

    def _halt_for_authorization(self, code: int, description: str) -> None:
        """Publish one failure per denial and stop the sensor.

        In-flight poll timers are left armed; they finalize with whatever
        candidate they already hold.
        """
        if self._authorization_halted:
            return
        self._authorization_halted = True
        self.immediate.mark_failure_reported()
        log.warning("Location unavailable: %s", description)
        self.publisher.publish(
            LocationEvent.LOCATION_FAILED,
            LocationError(ErrorKind.SERVICE_UNAVAILABLE, description, code),
        )
        if self.state.updating_location:
            self.provider.stop_updating()
            self.state.updating_location = False

    # ── provider delegate ────────────────────────────────────────────

    def on_fixes(self, fixes: List[LocationFix]) -> None:
        self.arbiter.handle_fixes(fixes)

    def on_error(self, code: int, message: str) -> None:
        if code == ERROR_DENIED:
            self._halt_for_authorization(code, message)
        else:
            # Not surfaced; the running polls simply finish with what they have
            log.warning("%s %d: %s", ErrorKind.SENSOR_ERROR.value, code, message)

    def on_authorization_changed(self, status: AuthorizationStatus) -> None:
        log.info("Authorization changed: %s", status.value)
        if status.blocks_updates:
            self._halt_for_authorization(ERROR_SERVICES_UNAVAILABLE, SERVICES_NOT_ENABLED)
        else:
            # A later denial is a new episode
            self._authorization_halted = False

    # ── status ───────────────────────────────────────────────────────

    def snapshot(self) -> dict:
        return {
            "gps_powered_up": self.state.gps_powered_up,
            "updating_location": self.state.updating_location,
            "wanting_interval": self.state.wanting_interval,
            "wanting_immediate": self.state.wanting_immediate,
            "desired_accuracy": self.power.desired_accuracy,
            "distance_filter": self.power.distance_filter,
            "authorization": self.provider.current_authorization_status().value,
            "monitoring_significant": self.monitoring_significant,
            "armed_timers": [role.value for role in self.timers.armed_roles()],
            "interval": self.interval.snapshot(),
            "immediate": self.immediate.snapshot(),
        }
