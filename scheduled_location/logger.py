"""
Logging for scheduled-location.

Modules only ask for a logger:

    from scheduled_location.logger import get_logger
    log = get_logger("interval")      # -> "scheduled_location.interval"

Handlers are attached once, by the service loop, through ``setup_logging()``:
every record goes to a timestamped file under ~/logs_scheduled_location
(or ``$SCHEDULED_LOCATION_LOG_DIR``), and INFO and up also go to stdout.
Importing the package attaches no handlers.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "scheduled_location"
LOG_DIR_ENV = "SCHEDULED_LOCATION_LOG_DIR"

_FMT = "%(asctime)s [%(levelname)-5s] %(name)-32s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

_log_file: Optional[Path] = None


def default_log_dir() -> Path:
    return Path(os.environ.get(LOG_DIR_ENV, Path.home() / "logs_scheduled_location"))


def setup_logging(log_dir: Optional[str] = None, console_level: int = logging.INFO) -> Path:
    """Attach the file and console handlers to the root logger. Returns the log file path.

    Safe to call more than once; later calls only adjust the console level.
    """
    global _log_file
    root = logging.getLogger()
    if _log_file is not None:
        for handler in root.handlers:
            if getattr(handler, "_scheduled_location_console", False):
                handler.setLevel(console_level)
        return _log_file

    directory = Path(log_dir) if log_dir else default_log_dir()
    directory.mkdir(parents=True, exist_ok=True)
    _log_file = directory / f"{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}.log"

    formatter = logging.Formatter(_FMT, datefmt=_DATE_FMT)

    file_handler = logging.FileHandler(str(_log_file), encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console._scheduled_location_console = True

    root.setLevel(logging.DEBUG)
    root.addHandler(file_handler)
    root.addHandler(console)
    get_logger("logger").info("Logging started -> %s", _log_file)
    return _log_file


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger, e.g. ``get_logger('service')``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
