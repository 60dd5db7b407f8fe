"""
Sensor power: merge accuracy demands and coarsen the sensor when idle.

Powering up never loosens the current accuracy, so two concurrent requests
always run at the stricter of their thresholds. Powering down restores the
coarse defaults (3 km accuracy, maximum distance filter).
"""

from scheduled_location.logger import get_logger
from scheduled_location.models import (
    ACCURACY_THREE_KILOMETERS,
    DISTANCE_FILTER_NONE,
    DISTANCE_MAX,
)
from scheduled_location.state import ServiceState

log = get_logger("power")


class PowerController:
    def __init__(self, provider, state: ServiceState):
        self._provider = provider
        self._state = state
        self.desired_accuracy = ACCURACY_THREE_KILOMETERS
        self.distance_filter = DISTANCE_MAX
        self._apply()

    def _apply(self) -> None:
        self._provider.set_desired_accuracy(self.desired_accuracy)
        self._provider.set_distance_filter(self.distance_filter)

    def power_up(self, desired_accuracy: float) -> None:
        self._state.gps_powered_up = True
        self.desired_accuracy = min(self.desired_accuracy, float(desired_accuracy))
        self.distance_filter = DISTANCE_FILTER_NONE
        self._apply()
        log.debug("GPS up: accuracy=%.1f m", self.desired_accuracy)

    def power_down(self) -> None:
        self._state.gps_powered_up = False
        self.desired_accuracy = ACCURACY_THREE_KILOMETERS
        self.distance_filter = DISTANCE_MAX
        self._apply()
        log.debug("GPS down")

    def power_down_if_idle(self) -> bool:
        """Power down unless a request still wants a location or a keep-alive
        wake is running. Returns True if powered down."""
        if self._state.wanting_location or self._state.keep_alive_wake:
            return False
        self.power_down()
        return True
