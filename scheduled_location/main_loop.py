"""
Service loop: load settings, build the service around a simulated sensor,
start the Web API, then drain commands, tick the sensor and fire due timers.

Run from the repository root:
    python -m scheduled_location.main_loop [--config FILE] [--port 5000] [--no-web]

Then e.g.:
    curl -X POST localhost:5000/api/interval -H 'Content-Type: application/json' \
         -d '{"interval": 60, "accuracy": 100}'
"""

import argparse
import logging
import threading
import time

from scheduled_location.commands import poll_commands
from scheduled_location.config import Settings
from scheduled_location.events import EventLog
from scheduled_location.lease import TimedLeaseManager
from scheduled_location.location import SimulatedProvider
from scheduled_location.logger import get_logger, setup_logging
from scheduled_location.service import ScheduledLocationService
from scheduled_location.timers import TimerScheduler
from scheduled_location.web_ui.app import create_app, set_status

log = get_logger("main_loop")

# Suppress noisy Flask/werkzeug access logs (they still go to the file)
logging.getLogger("werkzeug").setLevel(logging.WARNING)


def build_service(settings: Settings, clock=time.time):
    """Assemble scheduler, simulated provider, leases and service from *settings*."""
    scheduler = TimerScheduler(clock)
    sim = settings.get_simulation()
    provider = SimulatedProvider(
        clock=scheduler.now,
        origin=sim["origin"],
        fix_period=sim["fix_period"],
        walk_sigma_m=sim["walk_sigma_m"],
        accuracy_spread=sim["accuracy_spread"],
        seed=sim["seed"],
    )
    leases = TimedLeaseManager(scheduler, max_duration=settings.get_lease_duration())
    service = ScheduledLocationService(provider, scheduler, leases=leases, timing=settings.get_timing())
    return service, provider, scheduler


def run_once(service, provider, scheduler) -> None:
    """One loop iteration: commands, sensor, timers (in that order)."""
    poll_commands(service)
    provider.tick()
    scheduler.run_due()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Scheduled location service (simulated sensor)")
    parser.add_argument("--config", help="settings JSON (default: bundled location_service.json)")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--no-web", action="store_true", help="do not start the HTTP API")
    parser.add_argument("--tick", type=float, default=0.1, help="loop period in seconds")
    parser.add_argument("--log-dir", help="log directory (default: ~/logs_scheduled_location)")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG on the console too")
    args = parser.parse_args(argv)
    log_file = setup_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)

    # ------------------------------------------------------------------
    # 1. Settings and service
    # ------------------------------------------------------------------
    settings = Settings(args.config)
    service, provider, scheduler = build_service(settings)
    events = EventLog(service.publisher, scheduler.now)
    log.info("Settings loaded from %s. Timing: %s", settings.path, service.timing)

    # ------------------------------------------------------------------
    # 2. Web API (Flask) in a background thread
    # ------------------------------------------------------------------
    if not args.no_web:
        app = create_app()
        flask_thread = threading.Thread(
            target=lambda: app.run(host=args.host, port=args.port, threaded=True, use_reloader=False),
            name="ScheduledLocation-Flask", daemon=True,
        )
        flask_thread.start()
        log.info("Web API started on http://%s:%d", args.host, args.port)

    # ------------------------------------------------------------------
    # 3. Main loop
    # ------------------------------------------------------------------
    log.info("Service loop running every %.2f s. Log file: %s", args.tick, log_file)
    try:
        while True:
            t0 = time.monotonic()
            run_once(service, provider, scheduler)
            set_status(service.snapshot(), events.as_list())
            elapsed = time.monotonic() - t0
            time.sleep(max(0.0, args.tick - elapsed))
    except KeyboardInterrupt:
        log.info("Shutting down...")
        service.shutdown()
        events.close()
        log.info("Bye.")


if __name__ == "__main__":
    main()
