"""
Pluggable location providers for the scheduling core.

Usage:
    from scheduled_location.location import SimulatedProvider

    provider = SimulatedProvider(clock=time.time, seed=7)
    service = ScheduledLocationService(provider, scheduler, leases)
    ...
    provider.tick()   # once per loop iteration
"""

from .providers import LocationProvider, ScriptedProvider, SimulatedProvider

__all__ = [
    "LocationProvider",
    "ScriptedProvider",
    "SimulatedProvider",
]
