"""
Load service settings from JSON. Exposes timeouts, lease duration and
simulator parameters. Default file is location_service.json next to this file;
keys missing from the file fall back to built-in defaults.
"""
import json
import os
from typing import Optional, Tuple

from scheduled_location.state import Timing

_CONFIG_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(_CONFIG_DIR, "location_service.json")


def _load_json(path: str) -> dict:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must hold a JSON object")
    return data


class Settings:
    """Single place for all service settings."""

    def __init__(self, config_path: Optional[str] = None):
        self.path = config_path or DEFAULT_CONFIG_PATH
        self._data = _load_json(self.path)

    def get_location_update_timeout(self) -> float:
        """Seconds a poll waits for fixes; also the maximum age of a usable fix."""
        return float(self._data.get("location_update_timeout_sec", 5.0))

    def get_keep_alive_timer_timeout(self) -> float:
        return float(self._data.get("keep_alive_timer_timeout_sec", 1.0))

    def get_keep_alive_time(self) -> float:
        """Longest gap the service waits without a keep-alive wake."""
        return float(self._data.get("keep_alive_time_sec", 300.0))

    def get_lease_duration(self) -> float:
        return float(self._data.get("lease_duration_sec", 600.0))

    def get_timing(self) -> Timing:
        return Timing(
            location_update_timeout=self.get_location_update_timeout(),
            keep_alive_timer_timeout=self.get_keep_alive_timer_timeout(),
            keep_alive_time=self.get_keep_alive_time(),
        )

    def get_simulation(self) -> dict:
        """Simulated-sensor parameters, with defaults filled in."""
        sim = self._data.get("simulation") or {}
        origin: Tuple[float, float] = tuple(sim.get("origin", (52.3676, 4.9041)))[:2]
        seed = sim.get("seed")
        return {
            "origin": (float(origin[0]), float(origin[1])),
            "fix_period": float(sim.get("fix_period_sec", 1.0)),
            "walk_sigma_m": float(sim.get("walk_sigma_m", 3.0)),
            "accuracy_spread": float(sim.get("accuracy_spread", 0.4)),
            "seed": int(seed) if seed is not None else None,
        }
