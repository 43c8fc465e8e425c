"""Logging helpers for the folder audit report."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from spo_folder_audit.config import LoggingSettings, load_settings

# Records skipped as unusable are reported on their own channel so operators
# can raise or silence them independently of run progress messages.
RECORDS_LOGGER_NAME = "spo_folder_audit.records"

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _build_handlers(settings: LoggingSettings) -> list[logging.Handler]:
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream_handler]
    if not settings.file:
        return handlers
    try:
        Path(settings.file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.file)
    except OSError as exc:
        _logger.warning("Failed to open log file %s: %s", settings.file, exc)
        return handlers
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)
    return handlers


def configure_logging(level: str | None = None) -> None:
    """Configure process logging; ``level`` overrides LOG_LEVEL."""
    global _logging_configured

    settings = load_settings().logging
    resolved_level = getattr(logging, (level or settings.level).upper(), logging.INFO)

    logging.basicConfig(level=resolved_level, handlers=_build_handlers(settings), force=True)

    # httpx logs every request at INFO; one line per page is noise here.
    logging.getLogger("httpx").setLevel(max(resolved_level, logging.WARNING))

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)


def records_logger() -> logging.Logger:
    """Logger for per-record drop warnings; does not trigger configuration."""
    return logging.getLogger(RECORDS_LOGGER_NAME)
