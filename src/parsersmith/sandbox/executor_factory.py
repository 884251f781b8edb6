# src/parsersmith/sandbox/executor_factory.py — v1
"""Backend selection: E2B when E2B_API_KEY is set, local otherwise.

The choice is made once per process and cached.
"""

from __future__ import annotations

import logging

from parsersmith.config.settings import Settings
from parsersmith.sandbox.base_executor import BaseExecutor

logger = logging.getLogger(__name__)

_executor: BaseExecutor | None = None


def create_executor(settings: Settings) -> BaseExecutor:
    """Instantiate the backend the settings call for (uncached)."""
    if settings.e2b_configured:
        from parsersmith.sandbox.e2b_executor import E2BExecutor

        logger.info("Using E2B sandbox for parser execution")
        return E2BExecutor(
            api_key=settings.e2b_api_key,
            timeout_s=settings.execution_timeout_s,
            max_records=settings.max_output_records,
        )

    from parsersmith.sandbox.local_executor import LocalExecutor

    return LocalExecutor(
        timeout_s=settings.local_execution_timeout_s,
        memory_limit_mb=settings.local_memory_limit_mb,
        max_records=settings.max_output_records,
    )


def get_executor(settings: Settings | None = None) -> BaseExecutor:
    """Process-wide executor; later settings arguments are ignored."""
    global _executor
    if _executor is None:
        _executor = create_executor(settings or Settings())
    return _executor


def reset_executor() -> None:
    """Forget the cached executor (tests)."""
    global _executor
    _executor = None
