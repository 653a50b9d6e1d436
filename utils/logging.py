"""
Logging Utility - Structured JSON Logging

Provides centralized logging configuration for all harvester components.
Supports JSON format for production and human-readable format for development.

Usage:
    import logging

    from utils.logging import setup_logging

    setup_logging(level="INFO", format_type="text")
    logger = logging.getLogger(__name__)
    logger.info("Page fetched", extra={"offset": 0, "records": 500})
"""

import logging
import sys
from typing import Any

import orjson

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEBUG_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

# Attributes present on every LogRecord; anything else came from extra={...}
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line, merging `extra` fields."""

    def __init__(self, include_location: bool = False) -> None:
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_location:
            payload["location"] = f"{record.filename}:{record.lineno}"

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return orjson.dumps(payload, default=str).decode("utf-8")


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    output: str = "stdout",
    debug: bool = False,
) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format ('json' or 'text')
        output: Log output ('stdout' or 'stderr')
        debug: Force DEBUG level and include source location in every line
    """
    stream = sys.stderr if output == "stderr" else sys.stdout
    handler = logging.StreamHandler(stream)

    if format_type == "json":
        handler.setFormatter(JsonFormatter(include_location=debug))
    else:
        handler.setFormatter(logging.Formatter(DEBUG_TEXT_FORMAT if debug else TEXT_FORMAT))

    resolved_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=resolved_level, handlers=[handler], force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
