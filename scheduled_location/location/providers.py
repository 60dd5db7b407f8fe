"""
Location providers: pluggable sources of raw fixes and authorization state.

Implementations:
- ScriptedProvider: records configuration calls; tests push fixes, errors
  and authorization changes through it.
- SimulatedProvider: numpy random-walk position source for the service loop.
Future: a gpsd-backed provider, platform bridges, etc.

Providers call back into a delegate with ``on_fixes(list)``,
``on_error(code, message)`` and ``on_authorization_changed(status)``.
"""

import math
from typing import Callable, List, Optional, Tuple

import numpy as np

from scheduled_location.logger import get_logger
from scheduled_location.models import (
    ACCURACY_THREE_KILOMETERS,
    DISTANCE_MAX,
    AuthorizationStatus,
    LocationFix,
)

log = get_logger("provider")

METERS_PER_DEGREE_LAT = 111_320.0

# Significant-change monitoring reports only moves of at least this much
SIGNIFICANT_CHANGE_M = 500.0


class LocationProvider:
    """
    Interface for a location sensor. Accuracy and distances in meters.
    """

    def set_delegate(self, delegate) -> None:
        """Register the object that receives fixes, errors and authorization changes."""
        raise NotImplementedError

    def start_updating(self) -> None:
        raise NotImplementedError

    def stop_updating(self) -> None:
        raise NotImplementedError

    def set_desired_accuracy(self, meters: float) -> None:
        raise NotImplementedError

    def set_distance_filter(self, meters: float) -> None:
        raise NotImplementedError

    def request_authorization(self) -> None:
        raise NotImplementedError

    def current_authorization_status(self) -> AuthorizationStatus:
        raise NotImplementedError

    def start_monitoring_significant_changes(self) -> None:
        pass

    def stop_monitoring_significant_changes(self) -> None:
        pass


class ScriptedProvider(LocationProvider):
    """In-memory provider driven by the caller. Every setter call is recorded in ``calls``."""

    def __init__(self, authorization: AuthorizationStatus = AuthorizationStatus.AUTHORIZED):
        self._delegate = None
        self.authorization = authorization
        self.updating = False
        self.monitoring_significant = False
        self.desired_accuracy = ACCURACY_THREE_KILOMETERS
        self.distance_filter = DISTANCE_MAX
        self.authorization_requests = 0
        self.calls: List[Tuple[str, Optional[float]]] = []

    # ── LocationProvider ──────────────────────────────────────────────

    def set_delegate(self, delegate) -> None:
        self._delegate = delegate

    def start_updating(self) -> None:
        self.calls.append(("start_updating", None))
        self.updating = True

    def stop_updating(self) -> None:
        self.calls.append(("stop_updating", None))
        self.updating = False

    def set_desired_accuracy(self, meters: float) -> None:
        self.calls.append(("set_desired_accuracy", meters))
        self.desired_accuracy = meters

    def set_distance_filter(self, meters: float) -> None:
        self.calls.append(("set_distance_filter", meters))
        self.distance_filter = meters

    def request_authorization(self) -> None:
        self.calls.append(("request_authorization", None))
        self.authorization_requests += 1

    def current_authorization_status(self) -> AuthorizationStatus:
        return self.authorization

    def start_monitoring_significant_changes(self) -> None:
        self.calls.append(("start_monitoring_significant_changes", None))
        self.monitoring_significant = True

    def stop_monitoring_significant_changes(self) -> None:
        self.calls.append(("stop_monitoring_significant_changes", None))
        self.monitoring_significant = False

    # ── scripting ────────────────────────────────────────────────────

    def deliver(self, fixes: List[LocationFix]) -> None:
        """Push fixes to the delegate as a single sensor callback."""
        if self._delegate is not None:
            self._delegate.on_fixes(list(fixes))

    def fail(self, code: int, message: str) -> None:
        if self._delegate is not None:
            self._delegate.on_error(code, message)

    def change_authorization(self, status: AuthorizationStatus) -> None:
        self.authorization = status
        if self._delegate is not None:
            self._delegate.on_authorization_changed(status)

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


class SimulatedProvider(ScriptedProvider):
    """Random-walk sensor. Call ``tick()`` from the service loop.

    Parameters
    ----------
    clock : callable
        Same clock as the scheduler; used for fix timestamps.
    origin : (lat, lon)
        Starting position in decimal degrees.
    fix_period : float
        Seconds between fixes while updating.
    walk_sigma_m : float
        Std-dev of each random-walk step, meters.
    accuracy_spread : float
        Log-normal sigma applied to the reported horizontal accuracy.
    """

    def __init__(
        self,
        clock: Callable[[], float],
        origin: Tuple[float, float] = (52.3676, 4.9041),
        fix_period: float = 1.0,
        walk_sigma_m: float = 3.0,
        accuracy_spread: float = 0.4,
        seed: Optional[int] = None,
        authorization: AuthorizationStatus = AuthorizationStatus.AUTHORIZED,
    ):
        super().__init__(authorization=authorization)
        self._clock = clock
        self._rng = np.random.default_rng(seed)
        self._origin = np.array(origin, dtype=np.float64)
        self._offset_m = np.zeros(2, dtype=np.float64)  # (north, east)
        self._last_reported_m: Optional[np.ndarray] = None
        self._last_significant_m = np.zeros(2, dtype=np.float64)
        self._last_emit = -math.inf
        self.fix_period = float(fix_period)
        self.walk_sigma_m = float(walk_sigma_m)
        self.accuracy_spread = float(accuracy_spread)

    def _position(self) -> Tuple[float, float]:
        lat0 = self._origin[0]
        lat = lat0 + self._offset_m[0] / METERS_PER_DEGREE_LAT
        lon = self._origin[1] + self._offset_m[1] / (
            METERS_PER_DEGREE_LAT * math.cos(math.radians(lat0))
        )
        return float(lat), float(lon)

    def _accuracy(self) -> float:
        # Best/negative desired accuracy -> a good open-sky receiver
        base = 5.0 if self.desired_accuracy <= 0 else min(self.desired_accuracy, ACCURACY_THREE_KILOMETERS)
        return float(max(3.0, base * self._rng.lognormal(0.0, self.accuracy_spread)))

    def tick(self) -> Optional[LocationFix]:
        """Advance the walk; deliver a fix when one is due. Returns it (or None)."""
        now = self._clock()
        if now - self._last_emit < self.fix_period:
            return None
        self._last_emit = now
        self._offset_m += self._rng.normal(0.0, self.walk_sigma_m, size=2)

        report = False
        if self.updating:
            if self._last_reported_m is None or self.distance_filter <= 0:
                report = True
            else:
                moved = float(np.linalg.norm(self._offset_m - self._last_reported_m))
                report = moved >= self.distance_filter
        if self.monitoring_significant:
            if float(np.linalg.norm(self._offset_m - self._last_significant_m)) >= SIGNIFICANT_CHANGE_M:
                self._last_significant_m = self._offset_m.copy()
                report = True
        if not report:
            return None

        self._last_reported_m = self._offset_m.copy()
        lat, lon = self._position()
        fix = LocationFix(
            timestamp=now,
            horizontal_accuracy=self._accuracy(),
            latitude=lat,
            longitude=lon,
            speed=float(self.walk_sigma_m / self.fix_period),
        )
        self.deliver([fix])
        return fix
