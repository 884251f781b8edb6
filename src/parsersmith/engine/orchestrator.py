# src/parsersmith/engine/orchestrator.py — v1
"""Version trial orchestrator: newest cached parser first, first pass wins.

Execution failures, empty output and summary mismatches are soft: the version
gets a failure recorded and the next older one is tried. Only exhaustion is
reported, and the caller decides whether to regenerate.
"""

from __future__ import annotations

import logging

from parsersmith.cache.version_store import VersionStore
from parsersmith.config.settings import Settings
from parsersmith.core.errors import ExecutionError, ValidationMismatch
from parsersmith.core.models import (
    ExecutionResult,
    ExpectedSummary,
    ParsingMode,
    TrialOutcome,
)
from parsersmith.engine.summary_check import ensure_matches_summary
from parsersmith.logging.context import set_version_context
from parsersmith.sandbox.base_executor import BaseExecutor

logger = logging.getLogger(__name__)


class VersionTrialOrchestrator:
    """Tries cached parser versions in descending order."""

    def __init__(
        self,
        store: VersionStore,
        executor: BaseExecutor,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._settings = settings or Settings(_env_file=None)

    async def try_versions(
        self,
        key: str,
        text: str,
        mode: ParsingMode,
        expected: ExpectedSummary | None = None,
    ) -> TrialOutcome:
        """Run cached versions of ``key`` until one succeeds and validates.

        Storage errors from the version store propagate.
        """
        versions = await self._store.list_versions(key)
        should_validate = expected is not None and expected.has_validation_data(mode)
        tried: list[int] = []

        for entry in versions:
            tried.append(entry.version)
            set_version_context(entry.version)
            logger.info("Trying %s v%d...", key, entry.version)

            result = await self._run(entry.code, text, mode)
            if not result.success or not result.data:
                await self._store.record_failure(key, entry.version)
                logger.warning(
                    "%s v%d failed: %s", key, entry.version, result.error or "No records found"
                )
                continue

            if should_validate:
                try:
                    ensure_matches_summary(
                        result.data, expected, mode,
                        amount_tolerance=self._settings.transaction_amount_tolerance,
                        value_tolerance=self._settings.holding_value_tolerance,
                    )
                except ValidationMismatch as e:
                    await self._store.record_failure(key, entry.version)
                    logger.warning(
                        "%s v%d failed validation: %s", key, entry.version, ", ".join(e.issues)
                    )
                    continue

            await self._store.record_success(key, entry.version)
            logger.info(
                "%s v%d succeeded with %d records (%s)",
                key, entry.version, len(result.data),
                "validation passed" if should_validate else "no validation data",
            )
            return TrialOutcome(
                success=True,
                data=result.data,
                used_version=entry.version,
                tried_versions=tried,
                validation_passed=should_validate,
            )

        set_version_context(None)
        if not versions:
            error = f"No cached parser versions for {key}"
        elif should_validate:
            error = f"All {len(versions)} cached parser versions failed execution or validation"
        else:
            error = f"All {len(versions)} cached parser versions failed"
        return TrialOutcome(success=False, tried_versions=tried, error=error)

    async def _run(self, code: str, text: str, mode: ParsingMode) -> ExecutionResult:
        """Execute one version; a raising backend counts as a failed run."""
        try:
            return await self._executor.execute(code, text, mode)
        except ExecutionError as e:
            return ExecutionResult.failure(str(e), kind=e.kind)
        except Exception as e:  # noqa: BLE001 - backend bugs must not abort the trial loop
            logger.exception("Executor %s raised", self._executor.backend_name)
            return ExecutionResult.failure(f"{type(e).__name__}: {e}", kind="runtime")
