# src/parsersmith/sandbox/e2b_executor.py — v1
"""Remote isolated backend using an E2B sandbox micro-VM.

Requires 'e2b-code-interpreter' package: pip install e2b-code-interpreter.
One sandbox per call; it is always killed afterwards.
"""

from __future__ import annotations

import json
import logging
import time

from parsersmith.core.models import ExecutionResult, ParsingMode
from parsersmith.sandbox.base_executor import (
    BaseExecutor,
    elapsed_ms,
    extract_marked_output,
    static_gate,
)
from parsersmith.sandbox.runner import OUTPUT_END, OUTPUT_START, wrap_parser_code
from parsersmith.sandbox.shape import shape_output

logger = logging.getLogger(__name__)

# Time left for sandbox start-up and teardown
_SANDBOX_OVERHEAD_S = 5.0

_RESOURCE_ERRORS = frozenset({"MemoryError", "RecursionError"})


def build_remote_program(code: str, text: str) -> str:
    """Self-contained program that prints the parser result between markers."""
    return "\n".join([
        "import datetime, json, math, re",
        f"text = {text!r}",
        wrap_parser_code(code),
        f"print({OUTPUT_START!r} + json.dumps(parse(text)) + {OUTPUT_END!r})",
    ])


class E2BExecutor(BaseExecutor):
    """Executor backed by ``e2b_code_interpreter.AsyncSandbox``."""

    def __init__(
        self,
        api_key: str,
        timeout_s: float = 30.0,
        max_records: int = 50_000,
    ) -> None:
        try:
            from e2b_code_interpreter import AsyncSandbox
        except ImportError as e:
            raise ImportError(
                "e2b-code-interpreter package required: pip install e2b-code-interpreter"
            ) from e

        self._sandbox_cls = AsyncSandbox
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._max_records = max_records

    @property
    def backend_name(self) -> str:
        return "e2b"

    async def execute(self, code: str, text: str, mode: ParsingMode) -> ExecutionResult:
        started = time.monotonic()
        rejected = static_gate(code, started)
        if rejected is not None:
            return rejected

        program = build_remote_program(code, text)
        run_timeout = max(self._timeout_s - _SANDBOX_OVERHEAD_S, 1.0)
        sandbox = None
        try:
            logger.debug("Creating E2B sandbox...")
            sandbox = await self._sandbox_cls.create(
                api_key=self._api_key, timeout=int(self._timeout_s)
            )
            logger.debug("Running parser in sandbox (%d chars)", len(program))
            execution = await sandbox.run_code(program, language="python", timeout=run_timeout)
        except Exception as e:  # noqa: BLE001 - SDK and transport failures become soft failures
            kind = "timeout" if "timeout" in type(e).__name__.lower() else "runtime"
            logger.error("E2B execution failed (%s): %s", kind, e)
            return ExecutionResult.failure(
                f"Sandbox error: {e}", kind=kind, execution_time_ms=elapsed_ms(started)
            )
        finally:
            if sandbox is not None:
                try:
                    await sandbox.kill()
                    logger.debug("Sandbox closed")
                except Exception as kill_err:  # noqa: BLE001
                    logger.warning("Failed to close sandbox: %s", kill_err)

        execution_time_ms = elapsed_ms(started)

        if execution.error is not None:
            name = execution.error.name
            logger.info("Parser raised in sandbox: %s: %s", name, execution.error.value)
            return ExecutionResult.failure(
                f"Sandbox execution error: {name}: {execution.error.value}",
                kind="resource_limit" if name in _RESOURCE_ERRORS else "runtime",
                execution_time_ms=execution_time_ms,
            )

        if execution.logs.stderr:
            logger.debug("Sandbox stderr: %s", "".join(execution.logs.stderr)[:2000])

        payload = extract_marked_output("".join(execution.logs.stdout))
        if payload is None:
            return ExecutionResult.failure(
                "Parser did not return valid output (missing markers)",
                kind="invalid_output",
                execution_time_ms=execution_time_ms,
            )

        try:
            raw = json.loads(payload)
        except json.JSONDecodeError as e:
            return ExecutionResult.failure(
                f"Failed to parse result as JSON: {e}",
                kind="invalid_output",
                execution_time_ms=execution_time_ms,
            )

        return shape_output(raw, mode, self._max_records, execution_time_ms)
