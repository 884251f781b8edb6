# src/parsersmith/core/errors.py — v1
"""Exception taxonomy for parser generation, validation, execution and caching.

Per-version failures (ExecutionError, ValidationMismatch) are soft: the
orchestrator records them and moves on. Static-gate failures
(CodeSyntaxError, CodeValidationError) discard the code. Storage I/O errors
are never wrapped here and propagate as raised by the backend.
"""

from __future__ import annotations

from typing import Literal

ExecutionErrorKind = Literal[
    "timeout", "runtime", "resource_limit", "invalid_output", "unsafe_code"
]


class ParserSmithError(Exception):
    """Base class for all package errors."""


class GenerationError(ParserSmithError):
    """The LLM failed to produce usable parser code."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message)


class CodeSyntaxError(ParserSmithError):
    """Candidate code does not parse."""

    def __init__(self, message: str, lineno: int | None = None) -> None:
        self.lineno = lineno
        super().__init__(message)


class CodeValidationError(ParserSmithError):
    """Candidate code references disallowed capabilities."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = list(violations)
        super().__init__("Code validation failed: " + "; ".join(self.violations))


class ExecutionError(ParserSmithError):
    """Runtime failure or timeout inside an execution backend."""

    def __init__(self, message: str, kind: ExecutionErrorKind = "runtime") -> None:
        self.kind = kind
        super().__init__(message)


class ValidationMismatch(ParserSmithError):
    """Execution succeeded but output disagrees with the expected summary."""

    def __init__(self, issues: list[str]) -> None:
        self.issues = list(issues)
        super().__init__("Summary validation failed: " + ", ".join(self.issues))


class CacheCorruptionError(ParserSmithError):
    """A stored cache row could not be parsed."""

    def __init__(self, row_key: str, reason: str) -> None:
        self.row_key = row_key
        super().__init__(f"Corrupt cache entry {row_key}: {reason}")


class KeyConflictError(ParserSmithError):
    """Insert-if-absent hit an existing key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key already exists: {key}")


class VersionConflictError(ParserSmithError):
    """Could not allocate a fresh version number after repeated conflicts."""


class ParsingFailedError(ParserSmithError):
    """Every cached version and the regeneration attempt failed."""

    def __init__(self, message: str, tried_versions: list[int] | None = None) -> None:
        self.tried_versions = list(tried_versions or [])
        super().__init__(message)
