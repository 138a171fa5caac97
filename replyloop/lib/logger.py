"""Logging setup shared by the API server, scripts and tests.

Every record is tagged with the id of the HTTP request being served (or "-"
outside a request), so one reply can be followed across retrieval, routing
and generation log lines.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path

from replyloop.lib.config import LoggingConfig

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Third-party clients are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "uvicorn.access")


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, used for log files."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # logger.info(..., extra={"extra_fields": {...}})
        entry.update(getattr(record, "extra_fields", {}))
        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """[LEVEL] logger [request]: message, colored by level."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        request_id = getattr(record, "request_id", "-")
        context = f" [{request_id}]" if request_id != "-" else ""
        line = f"[{level}] {record.name}{context}: {record.getMessage()}"

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: str | None = None,
    structured: bool = False,
    quiet: bool = False,
) -> None:
    """Configure the root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path for a JSON-lines log file
        structured: Emit JSON on the console as well
        quiet: Only show warnings and errors from engine modules
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    context_filter = RequestContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(context_filter)
    console_handler.setFormatter(
        StructuredFormatter() if structured else ConsoleFormatter(color=sys.stdout.isatty())
    )
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if quiet:
        for name in ("replyloop", "__main__"):
            logging.getLogger(name).setLevel(logging.WARNING)
    else:
        root_logger.info(f"Logging initialized at {log_level} level")


def configure_logging(config: LoggingConfig, quiet: bool = False) -> None:
    """setup_logging driven by the logging section of the engine config."""
    setup_logging(
        log_level=config.level,
        log_file=config.file,
        structured=config.structured,
        quiet=quiet,
    )
