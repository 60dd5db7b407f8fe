"""
Value types shared by the scheduling core.

Units: accuracy and distances in meters (smaller accuracy = more precise),
times in seconds on the scheduler clock, coordinates in decimal degrees.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

# Sensor configuration values (same numeric meaning as the platform's).
ACCURACY_BEST: float = -1.0
ACCURACY_THREE_KILOMETERS: float = 3000.0
DISTANCE_FILTER_NONE: float = -1.0
DISTANCE_MAX: float = 1.7976931348623157e308

# LocationFailed error codes
ERROR_SERVICES_UNAVAILABLE = 100
ERROR_DENIED = 1


@dataclass(frozen=True)
class LocationFix:
    timestamp: float
    horizontal_accuracy: float
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    speed: Optional[float] = None
    course: Optional[float] = None

    @property
    def valid(self) -> bool:
        """Negative horizontal accuracy marks an invalid reading."""
        return self.horizontal_accuracy >= 0

    def age(self, now: float) -> float:
        return now - self.timestamp

    def as_dict(self) -> dict:
        return asdict(self)


class AuthorizationStatus(Enum):
    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    RESTRICTED = "restricted"

    @property
    def blocks_updates(self) -> bool:
        return self in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED)


class ErrorKind(Enum):
    SERVICE_UNAVAILABLE = "service_unavailable"
    NO_FIX_RECEIVED = "no_fix_received"
    SILENT_MISS = "silent_miss"  # interval poll with no fix; never published
    SENSOR_ERROR = "sensor_error"  # logged only


@dataclass(frozen=True)
class LocationError:
    """Payload of a LocationFailed event."""

    kind: ErrorKind
    description: str
    code: Optional[int] = None

    def as_dict(self) -> dict:
        return {"kind": self.kind.value, "description": self.description, "code": self.code}


def _better_or_equal(new: LocationFix, current: Optional[LocationFix]) -> bool:
    # Ties replace, so the most recent of equally accurate fixes wins.
    return current is None or new.horizontal_accuracy <= current.horizontal_accuracy


class _Request:
    def __init__(self, accuracy_threshold: float):
        self.accuracy_threshold = float(accuracy_threshold)
        self.candidate: Optional[LocationFix] = None

    def offer(self, fix: LocationFix) -> bool:
        """Keep *fix* if it is at least as accurate as the candidate."""
        if _better_or_equal(fix, self.candidate):
            self.candidate = fix
            return True
        return False

    def take_candidate(self) -> Optional[LocationFix]:
        fix, self.candidate = self.candidate, None
        return fix


class IntervalRequest(_Request):
    """Recurring poll: every ``interval`` seconds at ``accuracy_threshold``."""

    def __init__(self, interval: float, accuracy_threshold: float):
        super().__init__(accuracy_threshold)
        self.interval = float(interval)
        self.cycle_start_time: Optional[float] = None

    def begin_cycle(self, now: float) -> None:
        self.cycle_start_time = now
        self.candidate = None


class ImmediateRequest(_Request):
    """One-shot poll; accepted early once a fix meets ``accuracy_threshold``."""

    def __init__(self, accuracy_threshold: float):
        super().__init__(accuracy_threshold)
        # Set when an authorization failure was already published during this poll
        self.failure_reported = False

    def satisfied_by(self, fix: LocationFix) -> bool:
        return fix.horizontal_accuracy <= self.accuracy_threshold
