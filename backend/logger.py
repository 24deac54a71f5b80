"""Logging configuration for the Voice Assistant backend."""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Attributes present on every LogRecord; anything else came in through `extra=`
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Merge fields passed via extra=
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    log_file: Optional[str] = None
) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Level name such as "DEBUG" or "INFO"
        log_format: "json" for structured output, anything else for plain text
        log_file: Optional path for a combined log; an "error" sibling file
            receives ERROR records only
    """
    if log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handlers = [logging.StreamHandler()]

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

        base, ext = os.path.splitext(log_file)
        error_handler = logging.FileHandler(f"{base}.error{ext or '.log'}")
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Replace our own handlers so repeated setup doesn't duplicate output
    for handler in list(root_logger.handlers):
        if getattr(handler, "_installed_by_setup", False):
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._installed_by_setup = True
        root_logger.addHandler(handler)
