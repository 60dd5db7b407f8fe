"""scheduled_location.config — JSON settings for timeouts, leases and the simulator."""

from scheduled_location.config.loader import Settings, DEFAULT_CONFIG_PATH

__all__ = ["Settings", "DEFAULT_CONFIG_PATH"]
