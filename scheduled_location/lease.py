"""
Background-execution leases.

A lease is a time-bounded grant to keep running while the app is in the
background. ``TimedLeaseManager`` stands in for the OS grant: it expires a
lease after ``max_duration`` seconds unless released first.
"""

import itertools
from typing import Callable, Dict, Optional

from scheduled_location.logger import get_logger
from scheduled_location.timers import TimerHandle, TimerScheduler

log = get_logger("lease")


class Lease:
    """Handle for one grant. ``release()`` is idempotent."""

    def __init__(self, manager: "LeaseManager", lease_id: int, acquired_at: float):
        self._manager = manager
        self.lease_id = lease_id
        self.acquired_at = acquired_at
        self.released = False

    def release(self) -> None:
        if not self.released:
            self.released = True
            self._manager.release(self)

    def __repr__(self) -> str:
        return f"Lease(#{self.lease_id}{' released' if self.released else ''})"


class LeaseManager:
    """Interface for acquiring and releasing background-execution leases."""

    def acquire(self, on_expire: Callable[[Lease], None]) -> Lease:
        raise NotImplementedError

    def release(self, lease: Lease) -> None:
        raise NotImplementedError


class TimedLeaseManager(LeaseManager):
    def __init__(self, scheduler: TimerScheduler, max_duration: float = 600.0):
        self._scheduler = scheduler
        self.max_duration = float(max_duration)
        self._ids = itertools.count(1)
        self._expiry: Dict[int, TimerHandle] = {}

    @property
    def active_count(self) -> int:
        return len(self._expiry)

    def acquire(self, on_expire: Callable[[Lease], None]) -> Lease:
        lease = Lease(self, next(self._ids), self._scheduler.now())

        def expire() -> None:
            self._expiry.pop(lease.lease_id, None)
            lease.released = True
            log.warning("Lease #%d expired after %.0f s", lease.lease_id, self.max_duration)
            on_expire(lease)

        self._expiry[lease.lease_id] = self._scheduler.schedule(
            self.max_duration, expire, label=f"lease-{lease.lease_id}"
        )
        log.debug("Lease #%d acquired", lease.lease_id)
        return lease

    def release(self, lease: Lease) -> None:
        lease.released = True
        handle: Optional[TimerHandle] = self._expiry.pop(lease.lease_id, None)
        if handle is not None:
            handle.cancel()
            log.debug("Lease #%d released", lease.lease_id)
