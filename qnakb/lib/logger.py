"""Logging setup for the knowledge-base client and CLI."""

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path


# Context keys callers attach via extra={"extra_fields": {...}}
CONTEXT_FIELDS = ("knowledge_base_id", "operation_id", "environment")


def _context(record: logging.LogRecord) -> dict:
    fields = getattr(record, "extra_fields", None) or {}
    return {key: fields[key] for key in CONTEXT_FIELDS if fields.get(key) is not None}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with knowledge-base context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


class SimpleFormatter(logging.Formatter):
    """Console formatter: colored level, logger name, message, then any kb/operation context."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        formatted = f"{color}[{record.levelname}]{self.RESET} {record.name}: {record.getMessage()}"

        context = _context(record)
        if context:
            formatted += " (" + ", ".join(f"{key}={value}" for key, value in context.items()) + ")"
        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


def setup_logging(
    log_level: str = "INFO",
    log_file: str | None = None,
    structured: bool = False,
    quiet: bool = False,
) -> None:
    """Set up application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for file logging (always JSON)
        structured: Use structured JSON logging on the console
        quiet: Only show warnings and errors from qnakb modules
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(StructuredFormatter() if structured else SimpleFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    # httpx logs every request line at INFO, including query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    if quiet:
        logging.getLogger("qnakb").setLevel(logging.WARNING)
    else:
        root_logger.info(f"Logging initialized at {log_level} level")