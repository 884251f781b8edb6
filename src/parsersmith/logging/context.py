# src/parsersmith/logging/context.py — v1
"""Contextual logging support: attach source_key, mode, version to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per parse call.
_statement_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "statement_id", default=None
)
_source_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "source_key", default=None
)
_mode: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "mode", default=None
)
_version: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "version", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    statement_id: str | None = None
    source_key: str | None = None
    mode: str | None = None
    version: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        statement_id=_statement_id.get(),
        source_key=_source_key.get(),
        mode=_mode.get(),
        version=_version.get(),
    )


def set_parse_context(
    source_key: str, mode: str, statement_id: str | None = None
) -> None:
    """Set parse-level context (called once per document)."""
    _source_key.set(source_key)
    _mode.set(mode)
    _statement_id.set(statement_id)
    _version.set(None)


def set_version_context(version: int | None) -> None:
    """Set the parser version currently on trial."""
    _version.set(version)


def clear_context() -> None:
    """Reset all context variables."""
    _statement_id.set(None)
    _source_key.set(None)
    _mode.set(None)
    _version.set(None)
