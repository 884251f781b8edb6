# src/parsersmith/cache/version_store.py — v1
"""Append-only, versioned cache of parser-code artifacts.

Rows are stored in the shared key-value table as
``{namespace}:{source_key}:v{version}`` (namespaces ``parser_code`` for
transaction parsers and ``inv_parser_code`` for holding parsers).

Versions for a key form a dense sequence starting at 1. Entries are
immutable except for ``successCount`` / ``failCount``. Malformed rows are
logged and skipped; storage I/O errors propagate.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from pydantic import ValidationError

from parsersmith.cache.base_config_store import BaseConfigStore
from parsersmith.cache.models import CacheEntry, ConfigRow, EntryMeta, KeySummary
from parsersmith.config.settings import Settings
from parsersmith.core.errors import (
    CacheCorruptionError,
    KeyConflictError,
    VersionConflictError,
)
from parsersmith.core.keys import namespace_for
from parsersmith.core.models import ParsingMode
from parsersmith.sandbox.validator import check_syntax, validate_code

logger = logging.getLogger(__name__)

_SUCCESS_FIELD = "successCount"
_FAIL_FIELD = "failCount"


@dataclass(frozen=True)
class PrunePolicy:
    """Optional eviction of versions that keep failing."""

    keep_latest: int = 5
    min_success_rate: float = 0.2
    min_trials: int = 5


class VersionStore:
    """Versioned parser-code cache over a key-value store namespace."""

    def __init__(
        self,
        store: BaseConfigStore,
        namespace: str = "parser_code",
        save_max_attempts: int = 5,
        prune_policy: PrunePolicy | None = None,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._save_max_attempts = save_max_attempts
        self._prune_policy = prune_policy
        self._any_key_pattern = re.compile(rf"^{re.escape(namespace)}:(.+):v(\d+)$")

    @classmethod
    def for_mode(
        cls,
        store: BaseConfigStore,
        mode: ParsingMode,
        settings: Settings | None = None,
    ) -> VersionStore:
        """Build the store for a parsing mode's namespace."""
        settings = settings or Settings(_env_file=None)
        policy = None
        if settings.prune_enabled:
            policy = PrunePolicy(
                keep_latest=settings.prune_keep_latest,
                min_success_rate=settings.prune_min_success_rate,
                min_trials=settings.prune_min_trials,
            )
        return cls(
            store,
            namespace=namespace_for(mode),
            save_max_attempts=settings.save_max_attempts,
            prune_policy=policy,
        )

    @property
    def namespace(self) -> str:
        return self._namespace

    # --- Reads ---

    async def list_versions(self, key: str) -> list[CacheEntry]:
        """All readable versions for ``key``, newest first.

        Rows that fail to parse are logged and left out.
        """
        entries: list[CacheEntry] = []
        for version, row in await self._version_rows(key):
            try:
                entries.append(self._parse_entry(key, version, row))
            except CacheCorruptionError as e:
                logger.warning("%s", e)
        entries.sort(key=lambda e: e.version, reverse=True)
        return entries

    async def get_version(self, key: str, version: int) -> CacheEntry | None:
        """One entry, or None when missing or unreadable."""
        row = await self._store.get(self._row_key(key, version))
        if row is None:
            return None
        try:
            return self._parse_entry(key, version, row)
        except CacheCorruptionError as e:
            logger.warning("%s", e)
            return None

    async def latest_version(self, key: str) -> int:
        """Highest allocated version number, 0 if none.

        Computed from row keys so that an unreadable row still holds its number.
        """
        versions = [version for version, _ in await self._version_rows(key)]
        return max(versions, default=0)

    async def list_keys(self) -> list[KeySummary]:
        """Every source key in the namespace with its version count."""
        grouped: dict[str, list[int]] = {}
        for row in await self._store.scan(f"{self._namespace}:"):
            match = self._any_key_pattern.match(row.key)
            if not match:
                continue
            grouped.setdefault(match.group(1), []).append(int(match.group(2)))

        return [
            KeySummary(key=k, version_count=len(v), latest_version=max(v))
            for k, v in sorted(grouped.items())
        ]

    # --- Writes ---

    async def save_version(
        self, key: str, code: str, meta: EntryMeta | None = None
    ) -> int:
        """Persist ``code`` as the next version of ``key`` and return it.

        The code must pass the static checks. Version allocation retries on
        insert conflicts so concurrent savers never share a number.

        Raises:
            CodeSyntaxError, CodeValidationError: The code is rejected.
            VersionConflictError: No free version after repeated conflicts.
        """
        check_syntax(code)
        validate_code(code)
        meta = meta or EntryMeta()

        for attempt in range(1, self._save_max_attempts + 1):
            version = await self.latest_version(key) + 1
            entry = CacheEntry(
                source_key=key,
                version=version,
                code=code,
                detected_format=meta.detected_format,
                confidence=meta.confidence,
            )
            try:
                await self._store.insert(self._row_key(key, version), entry.to_payload())
            except KeyConflictError:
                logger.info(
                    "Version v%d of %s taken concurrently (attempt %d/%d)",
                    version, key, attempt, self._save_max_attempts,
                )
                continue

            logger.info("Saved parser code for %s v%d", key, version)
            if self._prune_policy is not None:
                await self.prune(key)
            return version

        raise VersionConflictError(
            f"Could not allocate a version for {key} after "
            f"{self._save_max_attempts} attempts"
        )

    async def record_success(self, key: str, version: int) -> None:
        """Increment the success counter. Missing entries are ignored."""
        await self._increment(key, version, _SUCCESS_FIELD)

    async def record_failure(self, key: str, version: int) -> None:
        """Increment the failure counter. Missing entries are ignored."""
        await self._increment(key, version, _FAIL_FIELD)

    async def clear_all(self, key: str) -> int:
        """Delete every version row for ``key``; returns the number deleted."""
        count = 0
        for _, row in await self._version_rows(key):
            if await self._store.delete(row.key):
                count += 1
        logger.info("Cleared %d cached parser versions for %s", count, key)
        return count

    async def prune(self, key: str) -> list[int]:
        """Delete old versions with a poor track record.

        The newest ``keep_latest`` versions are never touched. Does nothing
        without a prune policy.
        """
        policy = self._prune_policy
        if policy is None:
            return []

        removed: list[int] = []
        for entry in (await self.list_versions(key))[policy.keep_latest:]:
            rate = entry.success_rate
            if entry.trials < policy.min_trials or rate is None:
                continue
            if rate < policy.min_success_rate:
                if await self._store.delete(self._row_key(key, entry.version)):
                    removed.append(entry.version)

        if removed:
            logger.info("Pruned %s versions %s", key, removed)
        return removed

    # --- Internal helpers ---

    def _row_key(self, key: str, version: int) -> str:
        return f"{self._namespace}:{key}:v{version}"

    async def _version_rows(self, key: str) -> list[tuple[int, ConfigRow]]:
        """Rows belonging exactly to ``key`` with their version suffix."""
        pattern = re.compile(rf"^{re.escape(self._namespace)}:{re.escape(key)}:v(\d+)$")
        rows: list[tuple[int, ConfigRow]] = []
        for row in await self._store.scan(f"{self._namespace}:{key}:"):
            match = pattern.match(row.key)
            if match is None:
                logger.warning("Skipping row without version suffix: %s", row.key)
                continue
            rows.append((int(match.group(1)), row))
        return rows

    @staticmethod
    def _parse_entry(key: str, version: int, row: ConfigRow) -> CacheEntry:
        try:
            payload = json.loads(row.value)
        except json.JSONDecodeError as e:
            raise CacheCorruptionError(row.key, f"invalid JSON ({e})") from e
        if not isinstance(payload, dict):
            raise CacheCorruptionError(row.key, "payload is not an object")

        payload.update(sourceKey=key, version=version)
        try:
            return CacheEntry.model_validate(payload)
        except ValidationError as e:
            raise CacheCorruptionError(row.key, str(e)) from e

    async def _increment(self, key: str, version: int, field: str) -> None:
        row_key = self._row_key(key, version)
        if not await self._store.increment_field(row_key, field):
            logger.debug("No counter update for %s (%s)", row_key, field)
