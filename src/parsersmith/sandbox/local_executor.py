# src/parsersmith/sandbox/local_executor.py — v1
"""Constrained local backend: one isolated child interpreter per call.

The child (``python -I runner.py``) gets restricted builtins, POSIX memory and
CPU rlimits where available, and is killed once the wall-clock budget is
spent. Isolation is still far weaker than the remote sandbox.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import sys
import time
from pathlib import Path

from parsersmith.core.models import ExecutionResult, ParsingMode
from parsersmith.sandbox.base_executor import (
    BaseExecutor,
    elapsed_ms,
    extract_marked_output,
    static_gate,
)
from parsersmith.sandbox.shape import shape_output

logger = logging.getLogger(__name__)

RUNNER_PATH = Path(__file__).with_name("runner.py")

_STDERR_TAIL = 2000


class LocalExecutor(BaseExecutor):
    """Out-of-process executor using the bundled runner script."""

    def __init__(
        self,
        timeout_s: float = 5.0,
        memory_limit_mb: int = 512,
        max_records: int = 50_000,
        python_executable: str | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._memory_limit_mb = memory_limit_mb
        self._max_records = max_records
        self._python = python_executable or sys.executable
        logger.warning(
            "Using local parser execution: isolation is weaker than the remote "
            "sandbox (set E2B_API_KEY to enable it)"
        )

    @property
    def backend_name(self) -> str:
        return "local"

    async def execute(self, code: str, text: str, mode: ParsingMode) -> ExecutionResult:
        started = time.monotonic()
        rejected = static_gate(code, started)
        if rejected is not None:
            logger.warning("Refusing to run parser code: %s", rejected.error)
            return rejected

        request = json.dumps({
            "code": code,
            "text": text,
            "memory_limit_mb": self._memory_limit_mb,
            "cpu_limit_s": math.ceil(self._timeout_s) + 1,
        })

        proc = await asyncio.create_subprocess_exec(
            self._python, "-I", str(RUNNER_PATH),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(request.encode("utf-8")), timeout=self._timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning("Parser execution timed out after %.1fs", self._timeout_s)
            return ExecutionResult.failure(
                f"Execution timed out after {self._timeout_s:g}s",
                kind="timeout",
                execution_time_ms=elapsed_ms(started),
            )
        finally:
            # also on cancellation by a caller-side deadline
            await _reap(proc)

        return self._interpret(
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
            mode,
            elapsed_ms(started),
        )

    def _interpret(
        self,
        returncode: int | None,
        stdout: str,
        stderr: str,
        mode: ParsingMode,
        execution_time_ms: int,
    ) -> ExecutionResult:
        payload = extract_marked_output(stdout)
        if payload is None:
            if returncode is not None and returncode < 0:
                # killed by a signal: SIGXCPU, or SIGKILL from the OOM killer
                return ExecutionResult.failure(
                    f"Parser process killed by signal {-returncode}",
                    kind="resource_limit",
                    execution_time_ms=execution_time_ms,
                )
            logger.error("Runner produced no output (exit %s): %s", returncode, stderr[-_STDERR_TAIL:])
            return ExecutionResult.failure(
                f"Parser did not return valid output (exit code {returncode})",
                kind="runtime" if returncode else "invalid_output",
                execution_time_ms=execution_time_ms,
            )

        try:
            response = json.loads(payload)
        except json.JSONDecodeError as e:
            return ExecutionResult.failure(
                f"Failed to parse runner output as JSON: {e}",
                kind="invalid_output",
                execution_time_ms=execution_time_ms,
            )

        if not response.get("ok"):
            logger.info("Parser failed (%s): %s", response.get("kind"), response.get("error"))
            return ExecutionResult.failure(
                response.get("error") or "Unknown execution error",
                kind=response.get("kind") or "runtime",
                execution_time_ms=execution_time_ms,
            )

        return shape_output(response.get("result"), mode, self._max_records, execution_time_ms)


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill the child if it is still running and wait for it to exit."""
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()
