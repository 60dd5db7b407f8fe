"""
Tests for scheduled_location.service — sensor activation, authorization,
sensor errors, significant-change monitoring and shutdown.

Run:
    python -m pytest tests/test_service.py -v
"""

import sys
import os
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scheduled_location.events import LocationEvent
from scheduled_location.models import AuthorizationStatus, ErrorKind, ERROR_DENIED
from scheduled_location.state import Timing

from harness import Harness


# ── sensor activation ────────────────────────────────────────────────────

def test_updates_started_once_for_concurrent_requests():
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.service.get_location_with_accuracy(20)
    assert h.provider.call_names().count("start_updating") == 1
    assert h.provider.authorization_requests == 0


def test_undetermined_authorization_is_requested_then_updates_start():
    h = Harness(authorization=AuthorizationStatus.NOT_DETERMINED)
    h.service.get_location_with_accuracy(20)
    names = h.provider.call_names()
    assert names.index("request_authorization") < names.index("start_updating")
    assert h.service.state.updating_location


def test_updates_stay_on_after_power_down():
    h = Harness()
    h.service.get_location_with_accuracy(20)
    h.advance(5)
    assert not h.service.state.gps_powered_up
    assert h.provider.updating


def test_denied_authorization_fails_without_starting():
    h = Harness(authorization=AuthorizationStatus.DENIED)
    h.service.get_location_with_accuracy(20)
    assert "start_updating" not in h.provider.call_names()
    failures = h.payloads(LocationEvent.LOCATION_FAILED)
    assert len(failures) == 1
    assert failures[0].kind == ErrorKind.SERVICE_UNAVAILABLE
    assert failures[0].code == 100
    h.advance(5)  # the request's own timeout does not fail a second time
    assert len(h.payloads(LocationEvent.LOCATION_FAILED)) == 1


def test_restricted_interval_fails_once_per_denial():
    h = Harness(authorization=AuthorizationStatus.RESTRICTED)
    h.service.start_updating_location_with_interval(10, 100)
    h.advance(35)
    assert len(h.payloads(LocationEvent.LOCATION_FAILED)) == 1
    assert "start_updating" not in h.provider.call_names()


# ── authorization lost mid-poll ──────────────────────────────────────────

def test_denied_mid_poll_fails_once_and_timeout_still_finalizes():
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.advance(2)
    fix = h.fix(40)
    h.deliver(fix)
    h.provider.change_authorization(AuthorizationStatus.DENIED)
    assert h.names() == ["LocationFailed"]
    assert not h.provider.updating
    assert not h.service.state.updating_location

    h.provider.fail(ERROR_DENIED, "denied")
    h.advance(3)
    assert h.names() == ["LocationFailed", "LocationUpdated", "IntervalLocationUpdated"]
    assert h.payloads(LocationEvent.INTERVAL_LOCATION_UPDATED) == [fix]


def test_denied_mid_immediate_poll_without_fix_reports_once():
    h = Harness()
    h.service.get_location_with_accuracy(5)
    h.advance(1)
    h.provider.change_authorization(AuthorizationStatus.DENIED)
    h.advance(4)
    assert h.names() == ["LocationFailed"]
    assert h.events[0][1].kind == ErrorKind.SERVICE_UNAVAILABLE


def test_denied_error_code_halts_like_authorization_change():
    h = Harness()
    h.service.get_location_with_accuracy(5)
    h.provider.fail(ERROR_DENIED, "User denied location")
    failures = h.payloads(LocationEvent.LOCATION_FAILED)
    assert [f.description for f in failures] == ["User denied location"]
    assert not h.provider.updating


def test_updates_restart_after_authorization_returns():
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.provider.change_authorization(AuthorizationStatus.DENIED)
    h.advance(5)
    h.provider.change_authorization(AuthorizationStatus.AUTHORIZED)
    h.advance(55)
    assert h.provider.updating
    assert h.provider.call_names().count("start_updating") == 2


def test_denial_after_error_halt_and_restart_is_reported_again():
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.provider.fail(ERROR_DENIED, "denied")
    assert not h.provider.updating
    h.advance(60)  # next poll restarts updates, status is still authorized
    assert h.provider.updating
    h.provider.change_authorization(AuthorizationStatus.DENIED)
    assert len(h.payloads(LocationEvent.LOCATION_FAILED)) == 2
    assert not h.provider.updating
    assert not h.service.state.updating_location


def test_denial_after_not_determined_is_a_new_episode():
    h = Harness()
    h.service.get_location_with_accuracy(20)
    h.provider.change_authorization(AuthorizationStatus.DENIED)
    h.provider.change_authorization(AuthorizationStatus.NOT_DETERMINED)
    h.advance(5)
    assert len(h.payloads(LocationEvent.LOCATION_FAILED)) == 1

    h.service.get_location_with_accuracy(20)
    assert h.provider.updating
    h.provider.change_authorization(AuthorizationStatus.DENIED)
    assert len(h.payloads(LocationEvent.LOCATION_FAILED)) == 2
    assert not h.provider.updating


# ── sensor errors ────────────────────────────────────────────────────────

def test_other_sensor_errors_are_absorbed(caplog):
    caplog.set_level(logging.INFO, logger="scheduled_location")
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.provider.fail(0, "location unknown")
    assert "sensor_error 0: location unknown" in caplog.text
    assert h.events == []
    assert h.provider.updating
    fix = h.fix(30)
    h.deliver(fix)
    h.advance(5)
    assert h.payloads(LocationEvent.INTERVAL_LOCATION_UPDATED) == [fix]


# ── guards and invariants ────────────────────────────────────────────────

def test_fixes_ignored_when_no_request_active():
    h = Harness()
    h.service.start_updating_location_with_interval(60, 100)
    h.advance(10)
    h.deliver(h.fix(5))
    assert h.service.interval.request.candidate is None
    assert h.events == []


def test_power_tracks_requests_after_every_finalize():
    h = Harness()
    h.service.start_updating_location_with_interval(20, 100)
    checks = []
    h.service.publisher.subscribe_all(lambda e, p: checks.append(h.power_matches_requests()))
    for step in range(40):
        if step % 7 == 0:
            h.service.get_location_with_accuracy(15)
        if step % 3 == 0:
            h.deliver(h.fix(10 + step))
        h.advance(1)
    assert checks and all(checks)


def test_failing_subscriber_does_not_break_the_cycle():
    h = Harness()

    def boom(event, payload):
        raise RuntimeError("subscriber bug")

    h.service.publisher.subscribe(LocationEvent.LOCATION_UPDATED, boom)
    h.service.start_updating_location_with_interval(60, 100)
    h.deliver(h.fix(30))
    h.advance(5)
    assert h.names() == ["LocationUpdated", "IntervalLocationUpdated"]
    assert h.service.timers.armed_roles()


def test_timing_changes_apply_to_next_poll():
    timing = Timing(location_update_timeout=2.0)
    h = Harness(timing=timing)
    h.service.get_location_with_accuracy(5)
    h.advance(2)
    assert h.names() == ["LocationFailed"]
    timing.location_update_timeout = 8.0
    h.service.get_location_with_accuracy(5)
    h.advance(7)
    assert h.names() == ["LocationFailed"]


# ── significant changes / shutdown / status ──────────────────────────────

def test_significant_change_monitoring_passthrough():
    h = Harness()
    h.service.start_monitoring_significant_location_changes()
    assert h.provider.monitoring_significant
    assert h.service.snapshot()["monitoring_significant"]
    h.service.stop_monitoring_significant_location_changes()
    assert not h.provider.monitoring_significant


def test_shutdown_stops_everything_silently():
    h = Harness()
    h.service.start_updating_location_with_interval(400, 100)
    h.service.get_location_with_accuracy(5)
    h.service.start_monitoring_significant_location_changes()
    h.service.shutdown()
    assert h.service.timers.armed_roles() == []
    assert not h.provider.updating
    assert not h.provider.monitoring_significant
    assert not h.service.state.gps_powered_up
    assert h.leases.active_count == 0
    h.advance(1000)
    assert h.events == []


def test_snapshot_reports_phase_and_timers():
    h = Harness()
    h.service.start_updating_location_with_interval(400, 100)
    h.advance(5)
    snap = h.service.snapshot()
    assert snap["interval"]["phase"] == "cooldown_keep_alive"
    assert snap["armed_timers"] == ["keep_alive"]
    assert snap["interval"]["lease_held"]
    assert snap["authorization"] == "authorized"
