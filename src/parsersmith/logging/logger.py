# src/parsersmith/logging/logger.py — v1
"""Log configuration for the ``parsersmith`` logger tree.

A filter stamps each record with the parse context (statement, source key,
mode, version on trial) at emission time; the JSON and text formatters render
it. Records formatted without the filter read the live context instead.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from parsersmith.logging.context import get_context

ROOT_LOGGER = "parsersmith"

# SDK loggers that report every HTTP round-trip at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai", "e2b", "e2b_code_interpreter")


class ContextFilter(logging.Filter):
    """Attach the current parse context as ``record.parse_context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.parse_context = get_context().as_dict()
        return True


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    stamped = getattr(record, "parse_context", None)
    return stamped if stamped is not None else get_context().as_dict()


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _context_of(record)
        if context:
            entry["context"] = context
        if getattr(record, "data", None):
            entry["data"] = record.data  # type: ignore[attr-defined]
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line output for terminals: ``time [LEVEL] logger [key] (vN) - message``."""

    def format(self, record: logging.LogRecord) -> str:
        context = _context_of(record)
        line = f"{_timestamp(record):%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] {record.name}"
        if "source_key" in context:
            line += f" [{context['source_key']}]"
        if "version" in context:
            line += f" (v{context['version']})"
        line += f" - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Named logger under the package root."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Configure the ``parsersmith`` logger; safe to call more than once.

    Console output goes to stderr, stdout being reserved for CLI results.
    Below DEBUG the provider SDK loggers are held at WARNING.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional rotating log file.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(numeric_level)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from parsersmith.logging.handlers import create_rotating_handler

        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
        root.addHandler(handler)

    sdk_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)
