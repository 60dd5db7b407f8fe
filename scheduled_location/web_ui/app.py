"""
Flask application: HTTP control surface for the location service.

Provides:
  - POST /api/interval           {"interval": sec, "accuracy": m}
  - POST /api/interval/stop
  - POST /api/immediate          {"accuracy": m}
  - POST /api/significant/start, /api/significant/stop
  - GET  /api/status, /api/events

Routes only queue commands (see ``commands``); the service loop runs them.
Status and events are snapshots the loop pushes in with ``set_status()``.
"""

import threading
from typing import List, Optional

from flask import Flask, jsonify, request

from scheduled_location import __version__
from scheduled_location.commands import (
    parse_accuracy,
    parse_positive,
    set_get_location,
    set_significant_monitoring,
    set_start_interval,
    set_stop_interval,
)
from scheduled_location.logger import get_logger

_log = get_logger("web_ui")

# ---------------------------------------------------------------------------
# Snapshots written by the service loop
# ---------------------------------------------------------------------------
_status: dict = {}
_events: List[dict] = []
_snapshot_lock = threading.Lock()


def set_status(status: dict, events: Optional[List[dict]] = None) -> None:
    """Called by the service loop after each tick."""
    global _status, _events
    with _snapshot_lock:
        _status = dict(status)
        if events is not None:
            _events = list(events)


def get_status() -> dict:
    with _snapshot_lock:
        return dict(_status)


def get_events() -> List[dict]:
    with _snapshot_lock:
        return list(_events)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
def create_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    @app.route("/api/interval", methods=["POST"])
    def api_interval_start():
        data = request.get_json(silent=True) or {}
        interval = parse_positive(data.get("interval"), "interval")
        accuracy = parse_accuracy(data.get("accuracy"))
        if interval is None or accuracy is None:
            return jsonify({"error": "Need JSON with interval (seconds > 0) and accuracy (meters)"}), 400
        set_start_interval(interval, accuracy)
        _log.info("API interval start: every %.0f s at %.0f m", interval, accuracy)
        return jsonify({"status": "ok", "interval": interval, "accuracy": accuracy})

    @app.route("/api/interval/stop", methods=["POST"])
    def api_interval_stop():
        set_stop_interval()
        _log.info("API interval stop")
        return jsonify({"status": "ok"})

    @app.route("/api/immediate", methods=["POST"])
    def api_immediate():
        data = request.get_json(silent=True) or {}
        accuracy = parse_accuracy(data.get("accuracy"))
        if accuracy is None:
            return jsonify({"error": "Need JSON with accuracy (meters)"}), 400
        set_get_location(accuracy)
        _log.info("API immediate location at %.0f m", accuracy)
        return jsonify({"status": "ok", "accuracy": accuracy})

    @app.route("/api/significant/<action>", methods=["POST"])
    def api_significant(action: str):
        if action not in ("start", "stop"):
            return jsonify({"error": "Use /api/significant/start or /api/significant/stop"}), 404
        set_significant_monitoring(action == "start")
        return jsonify({"status": "ok", "monitoring": action == "start"})

    @app.route("/api/status")
    def api_status():
        body = get_status()
        body["app_version"] = __version__
        return jsonify(body)

    @app.route("/api/events")
    def api_events():
        return jsonify({"events": get_events()})

    return app
