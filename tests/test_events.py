"""
Tests for scheduled_location.events — publisher and recent-event log.

Run:
    python -m pytest tests/test_events.py -v
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scheduled_location.events import EventLog, EventPublisher, LocationEvent
from scheduled_location.models import ErrorKind, LocationError, LocationFix
from scheduled_location.timers import ManualClock


def test_subscriber_gets_only_its_event():
    pub = EventPublisher()
    got = []
    pub.subscribe(LocationEvent.IMMEDIATE_LOCATION_UPDATED, lambda e, p: got.append(p))
    pub.publish(LocationEvent.INTERVAL_LOCATION_UPDATED, "a")
    pub.publish(LocationEvent.IMMEDIATE_LOCATION_UPDATED, "b")
    assert got == ["b"]


def test_unsubscribe():
    pub = EventPublisher()
    got = []
    unsubscribe = pub.subscribe_all(lambda e, p: got.append(e))
    pub.publish(LocationEvent.LOCATION_FAILED, None)
    unsubscribe()
    unsubscribe()
    pub.publish(LocationEvent.LOCATION_FAILED, None)
    assert got == [LocationEvent.LOCATION_FAILED]


def test_raising_subscriber_does_not_stop_others():
    pub = EventPublisher()
    got = []

    def bad(event, payload):
        raise ValueError("nope")

    pub.subscribe(LocationEvent.LOCATION_UPDATED, bad)
    pub.subscribe(LocationEvent.LOCATION_UPDATED, lambda e, p: got.append(p))
    pub.publish(LocationEvent.LOCATION_UPDATED, 1)
    assert got == [1]


def test_event_log_is_bounded_and_serializable():
    pub = EventPublisher()
    clock = ManualClock(10.0)
    events = EventLog(pub, clock, maxlen=2)
    fix = LocationFix(timestamp=9.0, horizontal_accuracy=12.0, latitude=1.5, longitude=2.5)
    pub.publish(LocationEvent.LOCATION_FAILED, LocationError(ErrorKind.NO_FIX_RECEIVED, "No location received"))
    pub.publish(LocationEvent.LOCATION_UPDATED, fix)
    pub.publish(LocationEvent.IMMEDIATE_LOCATION_UPDATED, fix)
    assert len(events) == 2
    assert events.names() == ["LocationUpdated", "ImmediateLocationUpdated"]
    body = events.as_list()[0]
    assert body["time"] == 10.0
    assert body["payload"]["horizontal_accuracy"] == 12.0
    events.close()
    pub.publish(LocationEvent.LOCATION_UPDATED, fix)
    assert len(events) == 2
