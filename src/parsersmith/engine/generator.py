# src/parsersmith/engine/generator.py — v1
"""Code generator bridge: ask the LLM for a parser, gate it, run it, cache it.

Invoked by the caller once the cached versions are exhausted. Each failed
attempt (syntax, safety, execution, summary mismatch) is fed back to the model
as the next user turn, up to GENERATION_MAX_ATTEMPTS rounds. Nothing is
cached unless an attempt fully succeeds.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError

from parsersmith.cache.models import EntryMeta
from parsersmith.cache.version_store import VersionStore
from parsersmith.config.settings import Settings
from parsersmith.core.errors import (
    CodeSyntaxError,
    CodeValidationError,
    ExecutionError,
    GenerationError,
    ValidationMismatch,
)
from parsersmith.core.models import (
    ExecutionResult,
    ExpectedSummary,
    FileType,
    ParsingMode,
    TrialOutcome,
)
from parsersmith.engine import prompts
from parsersmith.engine.summary_check import ensure_matches_summary
from parsersmith.llm.base_client import BaseLLMClient
from parsersmith.llm.config import component_for
from parsersmith.llm.models import LLMResponse, Message
from parsersmith.llm.retry import LLMRetryExhausted, with_retry
from parsersmith.sandbox.base_executor import BaseExecutor
from parsersmith.sandbox.validator import check_syntax, validate_code

logger = logging.getLogger(__name__)


class GeneratedParserCode(BaseModel):
    """Structured output requested from the LLM."""

    code: str = Field(description="Python function body that parses `text` and returns a list of dicts")
    detected_format: str = Field(default="Unknown", description="Short name of the statement layout")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class _AttemptFailed(Exception):
    def __init__(self, problem: str, issues: list[str] | None = None) -> None:
        self.problem = problem
        self.issues = issues
        super().__init__(problem)


class CodeGeneratorBridge:
    """Generates, checks and optionally persists a fresh parser version."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        executor: BaseExecutor,
        settings: Settings | None = None,
    ) -> None:
        self._llm = llm_client
        self._executor = executor
        self._settings = settings or Settings(_env_file=None)

    async def generate(
        self,
        key: str,
        text: str,
        mode: ParsingMode,
        store: VersionStore | None = None,
        file_type: FileType = "pdf",
        institution: str | None = None,
        expected: ExpectedSummary | None = None,
    ) -> TrialOutcome:
        """Produce working parser code for ``text``.

        With ``store=None`` the flow runs without persisting anything.

        Raises:
            GenerationError: No attempt produced code that ran and validated.
        """
        settings = self._settings
        should_validate = expected is not None and expected.has_validation_data(mode)
        system = prompts.system_prompt(mode, file_type, institution, expected)
        messages = [
            Message(
                role="user",
                content=prompts.user_prompt(text, mode, settings.generation_max_text_chars),
            )
        ]
        max_attempts = settings.generation_max_attempts
        last_problem = "no attempt made"

        for attempt in range(1, max_attempts + 1):
            logger.info(
                "Generating parser for %s with %s (attempt %d/%d)",
                key, self._llm.model_name, attempt, max_attempts,
            )
            response = await self._ask(messages, system, mode, attempt)
            raw = response.content

            try:
                if response.truncated:
                    raise _AttemptFailed(
                        "the response was cut off at the output token limit, "
                        "write more compact code"
                    )
                candidate = self._decode(raw)
                result = await self._check_and_run(candidate.code, text, mode)
                if should_validate:
                    self._check_summary(result, expected, mode)
            except _AttemptFailed as failed:
                last_problem = failed.problem
                logger.warning(
                    "Generated parser for %s rejected: %s %s",
                    key, failed.problem, failed.issues or "",
                )
                messages.append(Message(role="assistant", content=raw))
                messages.append(
                    Message(role="user", content=prompts.feedback_prompt(failed.problem, failed.issues))
                )
                continue

            version = None
            if store is not None:
                version = await store.save_version(
                    key,
                    candidate.code,
                    EntryMeta(
                        detected_format=candidate.detected_format,
                        confidence=candidate.confidence,
                    ),
                )
            logger.info(
                "Generated parser for %s works (%d records, format=%s, version=%s)",
                key, len(result.data), candidate.detected_format, version,
            )
            return TrialOutcome(
                success=True,
                data=result.data,
                used_version=version,
                validation_passed=should_validate,
                generated=True,
            )

        raise GenerationError(
            f"Failed to generate a working parser for {key} after "
            f"{max_attempts} attempts: {last_problem}",
            attempts=max_attempts,
        )

    async def _ask(
        self, messages: list[Message], system: str, mode: ParsingMode, attempt: int
    ) -> LLMResponse:
        try:
            response = await with_retry(
                self._llm.complete,
                list(messages),
                system=system,
                max_tokens=self._settings.llm_max_tokens,
                temperature=self._settings.llm_default_temperature,
                response_format=GeneratedParserCode,
                component=component_for(mode),
            )
        except LLMRetryExhausted as e:
            raise GenerationError(f"LLM call failed: {e}", attempts=attempt) from e
        return response

    @staticmethod
    def _decode(raw: str) -> GeneratedParserCode:
        try:
            return GeneratedParserCode.model_validate_json(raw)
        except ValidationError as e:
            raise _AttemptFailed(
                "the response did not match the requested JSON schema",
                [err["msg"] for err in e.errors()],
            ) from e

    async def _check_and_run(self, code: str, text: str, mode: ParsingMode) -> ExecutionResult:
        try:
            check_syntax(code)
            validate_code(code)
        except CodeSyntaxError as e:
            raise _AttemptFailed(str(e)) from e
        except CodeValidationError as e:
            raise _AttemptFailed("the code uses disallowed constructs", e.violations) from e

        try:
            result = await self._executor.execute(code, text, mode)
        except ExecutionError as e:
            raise _AttemptFailed(f"execution failed ({e.kind}): {e}") from e

        if not result.success:
            raise _AttemptFailed(f"execution failed ({result.error_kind}): {result.error}")
        if not result.data:
            raise _AttemptFailed("the parser returned no records")
        return result

    def _check_summary(
        self, result: ExecutionResult, expected: ExpectedSummary, mode: ParsingMode
    ) -> None:
        try:
            ensure_matches_summary(
                result.data, expected, mode,
                amount_tolerance=self._settings.transaction_amount_tolerance,
                value_tolerance=self._settings.holding_value_tolerance,
            )
        except ValidationMismatch as e:
            raise _AttemptFailed("output does not match the statement summary", e.issues) from e
