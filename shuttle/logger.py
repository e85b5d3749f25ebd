import json
import logging
import os
import sys
from typing import Optional


# Keys passed through `extra=` that are copied into the JSON record
EXTRA_KEYS = (
    "trip_id",
    "booking_id",
    "user_id",
    "amount",
    "passenger_count",
    "provider",
    "request_id",
)


def setup_logger(name: str = "shuttle", level: Optional[str] = None) -> logging.Logger:
    """Configure the application logger and return it.

    Args:
        name: logger name (default: shuttle)
        level: log level (default: None -> LOG_LEVEL env var or INFO)

    Returns:
        The configured logging.Logger instance
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")

    log_level = getattr(logging, level.upper(), logging.INFO)

    service_name = os.getenv("SERVICE_NAME", name)
    logger = logging.getLogger(service_name)
    logger.setLevel(log_level)

    # Avoid duplicate output when called twice (tests, reloads)
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JsonFormatter())

    logger.addHandler(handler)
    # Module loggers (shuttle.*) are children of this one; root must not print them again
    logger.propagate = False

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(handler)
        root_logger.setLevel(log_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a module level logger."""
    return logging.getLogger(name)


class JsonFormatter(logging.Formatter):
    """Single-line JSON records for log collection.

    - datetime, level, logger and message are always present.
    - booking context passed via ``extra`` (trip_id, booking_id, ...) is copied over.
    - exception tracebacks land in ``exc_info``.
    """

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "datetime": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in EXTRA_KEYS:
            if hasattr(record, key):
                log_record[key] = getattr(record, key)

        service_name = getattr(record, "service_name", None) or os.getenv("SERVICE_NAME")
        if service_name:
            log_record["service_name"] = service_name

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False, default=str)
