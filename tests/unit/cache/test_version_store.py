# tests/unit/cache/test_version_store.py — v1
"""Tests for cache/version_store.py — versioned parser-code cache."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from parsersmith.cache.models import EntryMeta
from parsersmith.cache.version_store import PrunePolicy, VersionStore
from parsersmith.core.errors import (
    CodeSyntaxError,
    CodeValidationError,
    KeyConflictError,
    VersionConflictError,
)

KEY = "hdfc_bank:pdf"
CODE = "return []"


class TestSaveVersion:
    @pytest.mark.asyncio
    async def test_first_version_is_one(self, version_store):
        assert await version_store.latest_version(KEY) == 0
        assert await version_store.save_version(KEY, CODE) == 1
        assert await version_store.latest_version(KEY) == 1

    @pytest.mark.asyncio
    async def test_versions_are_dense(self, version_store):
        versions = [await version_store.save_version(KEY, CODE) for _ in range(4)]
        assert versions == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_row_layout(self, version_store, config_store):
        await version_store.save_version(
            KEY, CODE, EntryMeta(detected_format="HDFC savings", confidence=0.8)
        )
        row = await config_store.get("parser_code:hdfc_bank:pdf:v1")
        payload = json.loads(row.value)
        assert payload["code"] == CODE
        assert payload["detectedFormat"] == "HDFC savings"
        assert payload["successCount"] == 0
        assert payload["failCount"] == 0
        assert "version" not in payload

    @pytest.mark.asyncio
    async def test_unsafe_code_never_saved(self, version_store):
        with pytest.raises(CodeValidationError):
            await version_store.save_version(KEY, "import os\nreturn []")
        assert await version_store.latest_version(KEY) == 0

    @pytest.mark.asyncio
    async def test_syntax_error_never_saved(self, version_store):
        with pytest.raises(CodeSyntaxError):
            await version_store.save_version(KEY, "return [")
        assert await version_store.list_versions(KEY) == []

    @pytest.mark.asyncio
    async def test_retries_after_concurrent_insert(self, config_store):
        store = VersionStore(config_store)
        original = config_store.insert
        attempted: list[str] = []

        async def racing_insert(key, value):
            attempted.append(key)
            if len(attempted) == 1:
                # another writer takes v1 first
                await original(key, json.dumps({"code": "return []"}))
                raise KeyConflictError(key)
            await original(key, value)

        config_store.insert = racing_insert
        assert await store.save_version(KEY, CODE) == 2
        assert attempted == [f"parser_code:{KEY}:v1", f"parser_code:{KEY}:v2"]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, config_store):
        store = VersionStore(config_store, save_max_attempts=2)
        config_store.insert = AsyncMock(side_effect=KeyConflictError("x"))
        with pytest.raises(VersionConflictError):
            await store.save_version(KEY, CODE)
        assert config_store.insert.await_count == 2


class TestReads:
    @pytest.mark.asyncio
    async def test_list_versions_newest_first(self, version_store):
        for n in range(3):
            await version_store.save_version(KEY, f"return [{n}]")
        entries = await version_store.list_versions(KEY)
        assert [e.version for e in entries] == [3, 2, 1]
        assert entries[0].code == "return [2]"
        assert all(e.source_key == KEY for e in entries)

    @pytest.mark.asyncio
    async def test_list_versions_unknown_key(self, version_store):
        assert await version_store.list_versions("nobody:pdf") == []

    @pytest.mark.asyncio
    async def test_corrupt_row_skipped_but_version_reserved(self, version_store, config_store):
        await version_store.save_version(KEY, CODE)
        await config_store.insert(f"parser_code:{KEY}:v2", "{broken json")
        await config_store.insert(f"parser_code:{KEY}:v3", json.dumps({"no_code": True}))

        entries = await version_store.list_versions(KEY)
        assert [e.version for e in entries] == [1]
        assert await version_store.latest_version(KEY) == 3
        assert await version_store.save_version(KEY, CODE) == 4

    @pytest.mark.asyncio
    async def test_get_version(self, version_store, config_store):
        await version_store.save_version(KEY, CODE)
        await config_store.insert(f"parser_code:{KEY}:v2", "[]")
        assert (await version_store.get_version(KEY, 1)).code == CODE
        assert await version_store.get_version(KEY, 2) is None
        assert await version_store.get_version(KEY, 9) is None

    @pytest.mark.asyncio
    async def test_keys_do_not_leak_into_each_other(self, version_store):
        await version_store.save_version("amex:pdf", CODE)
        await version_store.save_version("amex:pdf", CODE)
        await version_store.save_version("amex:csv", CODE)
        assert await version_store.latest_version("amex:pdf") == 2
        assert await version_store.latest_version("amex:csv") == 1

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, config_store):
        transactions = VersionStore.for_mode(config_store, "transaction")
        holdings = VersionStore.for_mode(config_store, "holding")
        await transactions.save_version(KEY, CODE)
        assert holdings.namespace == "inv_parser_code"
        assert await holdings.latest_version(KEY) == 0
        assert await holdings.save_version(KEY, CODE) == 1

    @pytest.mark.asyncio
    async def test_list_keys(self, version_store):
        await version_store.save_version("b:pdf", CODE)
        await version_store.save_version("a:pdf", CODE)
        await version_store.save_version("a:pdf", CODE)
        summaries = await version_store.list_keys()
        assert [(s.key, s.version_count, s.latest_version) for s in summaries] == [
            ("a:pdf", 2, 2),
            ("b:pdf", 1, 1),
        ]


class TestCounters:
    @pytest.mark.asyncio
    async def test_counters_are_durable(self, version_store, config_store):
        await version_store.save_version(KEY, CODE)
        await version_store.record_success(KEY, 1)
        await version_store.record_success(KEY, 1)
        await version_store.record_failure(KEY, 1)

        reread = VersionStore(config_store)
        entry = await reread.get_version(KEY, 1)
        assert entry.success_count == 2
        assert entry.fail_count == 1
        assert entry.code == CODE

    @pytest.mark.asyncio
    async def test_missing_entry_is_ignored(self, version_store):
        await version_store.record_success(KEY, 7)
        await version_store.record_failure(KEY, 7)
        assert await version_store.latest_version(KEY) == 0


class TestClearAndPrune:
    @pytest.mark.asyncio
    async def test_clear_all(self, version_store):
        await version_store.save_version(KEY, CODE)
        await version_store.save_version(KEY, CODE)
        await version_store.save_version("other:pdf", CODE)
        assert await version_store.clear_all(KEY) == 2
        assert await version_store.latest_version(KEY) == 0
        assert await version_store.latest_version("other:pdf") == 1

    @pytest.mark.asyncio
    async def test_prune_without_policy_is_noop(self, version_store):
        await version_store.save_version(KEY, CODE)
        assert await version_store.prune(KEY) == []

    @pytest.mark.asyncio
    async def test_prune_on_save(self, config_store):
        store = VersionStore(
            config_store,
            prune_policy=PrunePolicy(keep_latest=1, min_success_rate=0.5, min_trials=2),
        )
        await store.save_version(KEY, CODE)
        await store.record_failure(KEY, 1)
        await store.record_failure(KEY, 1)

        assert await store.save_version(KEY, CODE) == 2
        assert [e.version for e in await store.list_versions(KEY)] == [2]
        assert await store.save_version(KEY, CODE) == 3

    @pytest.mark.asyncio
    async def test_prune_keeps_untested_and_good_versions(self, config_store):
        store = VersionStore(
            config_store,
            prune_policy=PrunePolicy(keep_latest=1, min_success_rate=0.5, min_trials=2),
        )
        await store.save_version(KEY, CODE)
        await store.save_version(KEY, CODE)
        await store.record_success(KEY, 1)
        await store.record_success(KEY, 1)
        await store.save_version(KEY, CODE)
        assert [e.version for e in await store.list_versions(KEY)] == [3, 2, 1]

    def test_for_mode_reads_prune_settings(self, config_store, settings):
        store = VersionStore.for_mode(
            config_store, "transaction",
            settings.model_copy(update={"prune_enabled": True, "prune_keep_latest": 2}),
        )
        assert store._prune_policy == PrunePolicy(keep_latest=2, min_success_rate=0.2, min_trials=5)
        assert VersionStore.for_mode(config_store, "holding", settings)._prune_policy is None
