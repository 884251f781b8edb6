# tests/unit/engine/test_service.py — v1
"""Tests for engine/service.py — cache-first parsing facade."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from parsersmith.core.errors import ParsingFailedError
from parsersmith.core.models import ExecutionResult
from parsersmith.engine.service import ParseJob, ParserService, create_parser_service
from parsersmith.logging.context import get_context

GOOD = "rows = [1]\nreturn rows"
BAD = "rows = [0]\nreturn rows"


@pytest.fixture
def executor(mock_executor, sample_transactions):
    async def execute(code, text, mode):
        if code == GOOD:
            return ExecutionResult(success=True, data=sample_transactions)
        return ExecutionResult.failure("IndexError: list index out of range", kind="runtime")

    mock_executor.execute.side_effect = execute
    return mock_executor


@pytest.fixture
def service(config_store, executor, scripted_llm, settings):
    return ParserService(
        config_store,
        executor,
        {"transaction": scripted_llm, "holding": scripted_llm},
        settings,
    )


class TestParse:
    @pytest.mark.asyncio
    async def test_cache_hit(self, service, scripted_llm):
        await service.store_for("transaction").save_version("acme_bank:pdf", GOOD)

        outcome = await service.parse("ACME Bank", "pdf", "text", "transaction", statement_id="st-1")

        assert outcome.source_key == "acme_bank:pdf"
        assert outcome.used_version == 1
        assert outcome.tried_versions == [1]
        assert outcome.generated is False
        assert outcome.cached is True
        assert len(outcome.records) == 3
        assert scripted_llm.calls == []
        assert get_context().statement_id == "st-1"

    @pytest.mark.asyncio
    async def test_regenerates_after_cached_versions_fail(self, service, scripted_llm, generated):
        store = service.store_for("transaction")
        await store.save_version("acme_bank:pdf", BAD)
        scripted_llm.set_responses([generated(GOOD)])

        outcome = await service.parse("ACME Bank", "pdf", "text", "transaction")

        assert outcome.generated is True
        assert outcome.used_version == 2
        assert outcome.tried_versions == [1]
        assert (await store.get_version("acme_bank:pdf", 1)).fail_count == 1
        assert (await store.get_version("acme_bank:pdf", 2)).code == GOOD

    @pytest.mark.asyncio
    async def test_uncacheable_source_bypasses_cache(self, service, scripted_llm, generated):
        store = service.store_for("transaction")
        await store.save_version("other:pdf", GOOD)
        scripted_llm.set_responses([generated(GOOD)])

        outcome = await service.parse("Other", "pdf", "text", "transaction")

        assert outcome.generated is True
        assert outcome.cached is False
        assert outcome.used_version is None
        assert outcome.tried_versions == []
        assert await store.latest_version("other:pdf") == 1

    @pytest.mark.asyncio
    async def test_use_cache_false(self, service, scripted_llm, generated):
        scripted_llm.set_responses([generated(GOOD)])
        outcome = await service.parse("ACME Bank", "csv", "text", "transaction", use_cache=False)
        assert outcome.cached is False
        assert await service.list_cached("transaction") == []

    @pytest.mark.asyncio
    async def test_institution_defaults_to_source(self, service, scripted_llm, generated):
        scripted_llm.set_responses([generated(GOOD)])
        await service.parse("HDFC Bank", "pdf", "text", "transaction")
        assert "HDFC BANK FORMAT" in scripted_llm.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_without_llm(self, config_store, executor, settings):
        service = ParserService(config_store, executor, None, settings)
        await service.store_for("holding").save_version("acme_bank:pdf", BAD)

        with pytest.raises(ParsingFailedError, match="no LLM configured") as exc_info:
            await service.parse("ACME Bank", "pdf", "text", "holding")
        assert exc_info.value.tried_versions == [1]

    @pytest.mark.asyncio
    async def test_generation_failure(self, service, scripted_llm, generated):
        await service.store_for("transaction").save_version("acme_bank:pdf", BAD)
        scripted_llm.set_responses([generated(BAD)] * 3)

        with pytest.raises(ParsingFailedError) as exc_info:
            await service.parse("ACME Bank", "pdf", "text", "transaction")

        assert str(exc_info.value).startswith("All 1 cached parser versions failed. Generating")
        assert exc_info.value.tried_versions == [1]
        assert await service.store_for("transaction").latest_version("acme_bank:pdf") == 1


class TestParseMany:
    @pytest.mark.asyncio
    async def test_results_in_job_order(self, config_store, executor, settings):
        service = ParserService(config_store, executor, None, settings)
        await service.store_for("transaction").save_version("acme_bank:pdf", GOOD)
        jobs = [
            ParseJob(source="Unknown Bank", file_type="pdf", text="a", mode="transaction", statement_id="1"),
            ParseJob(source="ACME Bank", file_type="pdf", text="b", mode="transaction", statement_id="2"),
        ]

        results = await service.parse_many(jobs, max_concurrency=1)

        assert [r.statement_id for r in results] == ["1", "2"]
        assert not results[0].success
        assert "no LLM configured" in results[0].error
        assert results[1].success
        assert results[1].outcome.used_version == 1


class TestAdministration:
    @pytest.mark.asyncio
    async def test_list_describe_clear(self, service):
        store = service.store_for("holding")
        await store.save_version("zerodha:csv", GOOD)
        await store.save_version("zerodha:csv", BAD)

        summaries = await service.list_cached("holding")
        assert [(s.key, s.version_count) for s in summaries] == [("zerodha:csv", 2)]

        entries = await service.describe("Zerodha", "csv", "holding")
        assert [e.version for e in entries] == [2, 1]

        assert await service.clear_cache("Zerodha", "csv", "holding") == 2
        assert await service.list_cached("holding") == []


class TestCreateParserService:
    def test_single_client_for_both_modes(self, settings, config_store, mock_executor, scripted_llm):
        service = create_parser_service(settings, scripted_llm, config_store, mock_executor)
        assert set(service._bridges) == {"transaction", "holding"}

    def test_clients_resolved_per_mode(self, settings, config_store, mock_executor):
        routed = settings.model_copy(update={"llm_holding_generator": "openai:gpt-4o"})
        with patch("parsersmith.engine.service.create_llm_client", side_effect=lambda p, m, s: MagicMock(name=p)) as factory:
            create_parser_service(routed, config_store=config_store, executor=mock_executor)
        assert [c.args[:2] for c in factory.call_args_list] == [
            ("anthropic", "claude-sonnet-4-20250514"),
            ("openai", "gpt-4o"),
        ]

    def test_shared_assignment_builds_one_client(self, settings, config_store, mock_executor):
        with patch("parsersmith.engine.service.create_llm_client") as factory:
            service = create_parser_service(settings, config_store=config_store, executor=mock_executor)
        factory.assert_called_once()
        assert service._bridges["transaction"]._llm is service._bridges["holding"]._llm
