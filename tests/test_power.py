"""
Tests for scheduled_location.power — accuracy merge and idle power-down.

Run:
    python -m pytest tests/test_power.py -v
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scheduled_location.location import ScriptedProvider
from scheduled_location.models import (
    ACCURACY_BEST,
    ACCURACY_THREE_KILOMETERS,
    DISTANCE_FILTER_NONE,
    DISTANCE_MAX,
)
from scheduled_location.power import PowerController
from scheduled_location.state import ServiceState

from harness import Harness


def _make():
    provider = ScriptedProvider()
    state = ServiceState()
    return provider, state, PowerController(provider, state)


def test_starts_coarse():
    provider, state, power = _make()
    assert not state.gps_powered_up
    assert provider.desired_accuracy == ACCURACY_THREE_KILOMETERS
    assert provider.distance_filter == DISTANCE_MAX


def test_power_up_sets_accuracy_and_no_filter():
    provider, state, power = _make()
    power.power_up(100)
    assert state.gps_powered_up
    assert provider.desired_accuracy == 100
    assert provider.distance_filter == DISTANCE_FILTER_NONE


def test_power_up_never_loosens_accuracy():
    provider, state, power = _make()
    power.power_up(20)
    power.power_up(100)
    assert provider.desired_accuracy == 20
    power.power_up(ACCURACY_BEST)
    assert provider.desired_accuracy == ACCURACY_BEST


def test_power_down_restores_coarse_defaults():
    provider, state, power = _make()
    power.power_up(10)
    power.power_down()
    assert not state.gps_powered_up
    assert provider.desired_accuracy == ACCURACY_THREE_KILOMETERS
    assert provider.distance_filter == DISTANCE_MAX


def test_power_down_if_idle_respects_active_requests():
    provider, state, power = _make()
    power.power_up(50)
    state.wanting_interval = True
    assert not power.power_down_if_idle()
    assert state.gps_powered_up
    state.wanting_interval = False
    assert power.power_down_if_idle()
    assert not state.gps_powered_up


# ── merge through the service ────────────────────────────────────────────

def test_concurrent_requests_run_at_tightest_accuracy():
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.service.get_location_with_accuracy(20)
    assert h.provider.desired_accuracy == 20

    h2 = Harness()
    h2.service.get_location_with_accuracy(20)
    h2.service.start_updating_location_with_interval(60, 100)
    assert h2.provider.desired_accuracy == 20


def test_power_released_only_when_both_requests_finish():
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.advance(1)
    h.service.get_location_with_accuracy(20)
    h.advance(4)  # interval poll times out; immediate still running
    assert h.service.state.gps_powered_up
    assert h.power_matches_requests()
    h.advance(1)  # immediate times out
    assert not h.service.state.gps_powered_up
    assert h.power_matches_requests()


def test_keep_alive_wake_holds_power():
    provider, state, power = _make()
    power.power_up(-1)
    state.keep_alive_wake = True
    assert not power.power_down_if_idle()
    assert state.gps_powered_up
    state.keep_alive_wake = False
    assert power.power_down_if_idle()
