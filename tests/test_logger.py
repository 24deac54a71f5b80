"""Unit tests for logging configuration."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import json
import logging
import pytest
from logger import JSONFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_includes_extra_fields(self):
        record = logging.LogRecord("voice", logging.INFO, __file__, 1, "Audio converted", None, None)
        record.input = "a.webm"
        record.output = "a.webm.mp3"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Audio converted"
        assert data["level"] == "INFO"
        assert data["logger"] == "voice"
        assert data["input"] == "a.webm"
        assert data["output"] == "a.webm.mp3"
        assert data["timestamp"].endswith("Z")

    def test_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("voice", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_json_format(self, restore_root_logger):
        setup_logging("DEBUG", log_format="json")

        ours = [h for h in restore_root_logger.handlers if getattr(h, "_installed_by_setup", False)]
        assert len(ours) == 1
        assert isinstance(ours[0].formatter, JSONFormatter)
        assert restore_root_logger.level == logging.DEBUG

    def test_repeated_setup_does_not_duplicate(self, restore_root_logger):
        setup_logging("INFO")
        setup_logging("INFO")

        ours = [h for h in restore_root_logger.handlers if getattr(h, "_installed_by_setup", False)]
        assert len(ours) == 1

    def test_file_handlers(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "combined.log"
        setup_logging("INFO", log_file=str(log_file))

        logging.getLogger("voice").error("disk full")
        logging.getLogger("voice").info("all good")
        for handler in restore_root_logger.handlers:
            handler.flush()

        combined = log_file.read_text()
        errors = (tmp_path / "logs" / "combined.error.log").read_text()
        assert "disk full" in combined and "all good" in combined
        assert "disk full" in errors and "all good" not in errors
