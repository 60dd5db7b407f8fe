"""Tests for scheduled_location.logger (handler setup)."""
import sys
import os
import logging
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scheduled_location.logger import get_logger, setup_logging


def test_loggers_are_package_children():
    assert get_logger("interval").name == "scheduled_location.interval"


def test_setup_logging_writes_to_file_once(tmp_path):
    log_file = setup_logging(str(tmp_path))
    again = setup_logging(str(tmp_path / "other"), logging.DEBUG)
    assert again == log_file
    get_logger("test").debug("hello file")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello file" in log_file.read_text(encoding="utf-8")
