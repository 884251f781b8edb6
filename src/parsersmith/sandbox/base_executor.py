# src/parsersmith/sandbox/base_executor.py — v1
"""Abstract execution backend and helpers shared by the implementations."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

from parsersmith.core.errors import CodeSyntaxError, CodeValidationError
from parsersmith.core.models import ExecutionResult, ParsingMode
from parsersmith.sandbox.runner import OUTPUT_END, OUTPUT_START
from parsersmith.sandbox.validator import check_syntax, validate_code


class BaseExecutor(ABC):
    """Runs a parser function body against document text.

    Implementations never raise for parser failures: timeouts, runtime
    exceptions and malformed output come back as a failed ExecutionResult
    with ``error_kind`` set.
    """

    @abstractmethod
    async def execute(self, code: str, text: str, mode: ParsingMode) -> ExecutionResult:
        """Execute ``code`` against ``text`` and shape the output for ``mode``."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Backend identifier (local, e2b)."""


def static_gate(code: str, started: float) -> ExecutionResult | None:
    """Re-run the static checks; a failed result when the code is rejected."""
    try:
        check_syntax(code)
        validate_code(code)
    except (CodeSyntaxError, CodeValidationError) as e:
        return ExecutionResult.failure(str(e), "unsafe_code", elapsed_ms(started))
    return None


def extract_marked_output(stdout: str) -> str | None:
    """Return the payload between the output markers, or None."""
    start = stdout.find(OUTPUT_START)
    end = stdout.find(OUTPUT_END, start + len(OUTPUT_START)) if start != -1 else -1
    if start == -1 or end == -1:
        return None
    return stdout[start + len(OUTPUT_START):end]


def elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
