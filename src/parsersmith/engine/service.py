# src/parsersmith/engine/service.py — v1
"""Caller-facing facade: cached versions first, one regeneration, then fail.

    service = create_parser_service(settings)
    outcome = await service.parse("HDFC Bank", "pdf", text, "transaction")
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel

from parsersmith.cache.base_config_store import BaseConfigStore
from parsersmith.cache.models import CacheEntry, KeySummary
from parsersmith.cache.store_factory import create_config_store
from parsersmith.cache.version_store import VersionStore
from parsersmith.config.settings import Settings, load_settings
from parsersmith.core.errors import GenerationError, ParserSmithError, ParsingFailedError
from parsersmith.core.keys import is_cacheable, normalize_key
from parsersmith.core.models import (
    PARSING_MODES,
    ExpectedSummary,
    FileType,
    ParseOutcome,
    ParsingMode,
)
from parsersmith.engine.generator import CodeGeneratorBridge
from parsersmith.engine.orchestrator import VersionTrialOrchestrator
from parsersmith.llm.base_client import BaseLLMClient
from parsersmith.llm.client_factory import create_llm_client
from parsersmith.llm.config import component_for, resolve_llm
from parsersmith.logging.context import set_parse_context
from parsersmith.sandbox.base_executor import BaseExecutor
from parsersmith.sandbox.executor_factory import get_executor

logger = logging.getLogger(__name__)


class ParseJob(BaseModel):
    """One document for ``ParserService.parse_many``."""

    source: str
    file_type: FileType
    text: str
    mode: ParsingMode
    expected: ExpectedSummary | None = None
    institution: str | None = None
    statement_id: str | None = None


class JobResult(BaseModel):
    """Per-job outcome of a batch; exactly one of outcome/error is set."""

    statement_id: str | None = None
    source: str
    outcome: ParseOutcome | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome is not None


class ParserService:
    """Parse documents with cached parser code, regenerating when needed."""

    def __init__(
        self,
        config_store: BaseConfigStore,
        executor: BaseExecutor,
        llm_clients: dict[ParsingMode, BaseLLMClient] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings(_env_file=None)
        self._config_store = config_store
        self._stores = {
            mode: VersionStore.for_mode(config_store, mode, self._settings)
            for mode in PARSING_MODES
        }
        self._orchestrators = {
            mode: VersionTrialOrchestrator(store, executor, self._settings)
            for mode, store in self._stores.items()
        }
        self._bridges = {
            mode: CodeGeneratorBridge(client, executor, self._settings)
            for mode, client in (llm_clients or {}).items()
        }

    def store_for(self, mode: ParsingMode) -> VersionStore:
        return self._stores[mode]

    async def parse(
        self,
        source: str,
        file_type: FileType,
        text: str,
        mode: ParsingMode,
        expected: ExpectedSummary | None = None,
        institution: str | None = None,
        statement_id: str | None = None,
        use_cache: bool = True,
    ) -> ParseOutcome:
        """Extract records from ``text``.

        Raises:
            ParsingFailedError: Every cached version and the regeneration failed.
        """
        key = normalize_key(source, file_type)
        set_parse_context(key, mode, statement_id)
        cacheable = use_cache and is_cacheable(source)
        tried: list[int] = []

        if cacheable:
            trial = await self._orchestrators[mode].try_versions(key, text, mode, expected)
            if trial.success:
                return ParseOutcome(
                    source_key=key,
                    mode=mode,
                    records=trial.data or [],
                    used_version=trial.used_version,
                    tried_versions=trial.tried_versions,
                    validation_passed=trial.validation_passed,
                )
            tried = trial.tried_versions
            logger.info("No cached parser worked for %s (tried %s), regenerating", key, tried)

        bridge = self._bridges.get(mode)
        if bridge is None:
            raise ParsingFailedError(
                f"No working cached parser for {key} and no LLM configured to generate one",
                tried_versions=tried,
            )

        try:
            generated = await bridge.generate(
                key, text, mode,
                store=self._stores[mode] if cacheable else None,
                file_type=file_type,
                institution=institution or source,
                expected=expected,
            )
        except GenerationError as e:
            message = f"Generating a parser for {key} failed: {e}"
            if tried:
                message = f"All {len(tried)} cached parser versions failed. {message}"
            raise ParsingFailedError(message, tried_versions=tried) from e

        return ParseOutcome(
            source_key=key,
            mode=mode,
            records=generated.data or [],
            used_version=generated.used_version,
            tried_versions=tried,
            generated=True,
            cached=cacheable,
            validation_passed=generated.validation_passed,
        )

    async def parse_many(
        self, jobs: list[ParseJob], max_concurrency: int | None = None
    ) -> list[JobResult]:
        """Parse jobs concurrently; results come back in job order."""
        limit = max_concurrency or self._settings.parse_max_concurrency
        semaphore = asyncio.Semaphore(limit)

        async def run(job: ParseJob) -> JobResult:
            async with semaphore:
                try:
                    outcome = await self.parse(
                        job.source, job.file_type, job.text, job.mode,
                        expected=job.expected,
                        institution=job.institution,
                        statement_id=job.statement_id,
                    )
                except ParserSmithError as e:
                    logger.error("Parsing failed for %s: %s", job.statement_id or job.source, e)
                    return JobResult(statement_id=job.statement_id, source=job.source, error=str(e))
                return JobResult(statement_id=job.statement_id, source=job.source, outcome=outcome)

        logger.info("Parsing %d documents (max concurrency %d)", len(jobs), limit)
        return list(await asyncio.gather(*(run(job) for job in jobs)))

    # --- Administration ---

    async def list_cached(self, mode: ParsingMode) -> list[KeySummary]:
        return await self._stores[mode].list_keys()

    async def describe(self, source: str, file_type: FileType, mode: ParsingMode) -> list[CacheEntry]:
        """Cached versions for a source, newest first."""
        return await self._stores[mode].list_versions(normalize_key(source, file_type))

    async def clear_cache(self, source: str, file_type: FileType, mode: ParsingMode) -> int:
        return await self._stores[mode].clear_all(normalize_key(source, file_type))

    def close(self) -> None:
        self._config_store.close()


def create_parser_service(
    settings: Settings | None = None,
    llm_client: BaseLLMClient | None = None,
    config_store: BaseConfigStore | None = None,
    executor: BaseExecutor | None = None,
) -> ParserService:
    """Wire store, executor and per-mode LLM clients from settings."""
    settings = settings or load_settings()

    if llm_client is not None:
        clients = {mode: llm_client for mode in PARSING_MODES}
    else:
        by_assignment: dict[str, BaseLLMClient] = {}
        clients = {}
        for mode in PARSING_MODES:
            assignment = resolve_llm(component_for(mode), settings)
            if assignment.key not in by_assignment:
                by_assignment[assignment.key] = create_llm_client(
                    assignment.provider, assignment.model, settings
                )
            clients[mode] = by_assignment[assignment.key]
            logger.debug("LLM for %s: %s (%s)", mode, assignment.key, assignment.source)

    return ParserService(
        config_store=config_store or create_config_store(settings),
        executor=executor or get_executor(settings),
        llm_clients=clients,
        settings=settings,
    )
