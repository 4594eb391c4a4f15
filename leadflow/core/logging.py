"""Logging for LeadFlow.

File logs are one JSON object per line so planner runs can be grepped by
lead; the console gets a short human-readable line. Structured fields ride
along in ``extra={"context": {...}}``.

Usage:
    from leadflow.core.logging import get_logger, lead_context, setup_logging

    setup_logging()  # once, at startup
    logger = get_logger(__name__)

    logger.info("Planning follow-ups", extra={"context": lead_context(lead, policy_id="default")})
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER_NAME = "leadflow"
LOG_FILE_NAME = "leadflow.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for the log file."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialize a record.

        Returns:
            JSON with timestamp, level, module, message and any context
        """
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Context may hold datetimes and enums
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short ``HH:MM:SS LEVEL logger: message [k=v, ...]`` lines."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {record.levelname[:4]:4s} {record.name}: {record.getMessage()}"

        context = getattr(record, "context", None)
        if context:
            line += " [" + ", ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return line


def lead_context(lead: Any, **fields: Any) -> dict[str, Any]:
    """Build the context dict logged alongside lead-level events.

    Args:
        lead: Lead the event concerns
        **fields: Extra fields merged in after lead_id and stage

    Returns:
        Dict suitable for ``extra={"context": ...}``
    """
    stage = getattr(lead, "stage", None)
    context: dict[str, Any] = {
        "lead_id": lead.id,
        "stage": getattr(stage, "value", stage),
    }
    context.update(fields)
    return context


_logging_initialized = False
_handlers: list[logging.Handler] = []


def setup_logging(
    log_dir: Optional[Path] = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """Attach console and rotating file handlers to the leadflow logger.

    Only the first call has an effect until ``shutdown_logging`` runs.

    Args:
        log_dir: Directory for leadflow.log. Defaults to ~/.leadflow/logs
        console_level: Minimum level shown on the console
        file_level: Minimum level written to the file
    """
    global _logging_initialized

    if _logging_initialized:
        return

    log_dir = log_dir or Path.home() / ".leadflow" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(ConsoleFormatter())

    log_file = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    log_file.setLevel(file_level)
    log_file.setFormatter(JSONFormatter())

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    for handler in (console, log_file):
        root.addHandler(handler)
        _handlers.append(handler)

    _logging_initialized = True
    root.info("Logging initialized", extra={"context": {"log_dir": str(log_dir)}})


def shutdown_logging() -> None:
    """Detach and close the handlers added by ``setup_logging``."""
    global _logging_initialized

    root = logging.getLogger(ROOT_LOGGER_NAME)
    while _handlers:
        handler = _handlers.pop()
        root.removeHandler(handler)
        handler.close()
    _logging_initialized = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the leadflow hierarchy.

    ``get_logger("cli")`` and ``get_logger("leadflow.cli")`` return the same
    logger.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
