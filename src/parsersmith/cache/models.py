# src/parsersmith/cache/models.py — v1
"""Cache domain models: ConfigRow, CacheEntry, KeySummary.

Entry payloads are stored with camelCase keys:
``{"code", "detectedFormat", "confidence", "createdAt", "successCount", "failCount"}``.
The source key and version live in the row key, not in the payload.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_ROW_ONLY_FIELDS = {"source_key", "version"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfigRow(BaseModel):
    """One row of the shared key-value config table."""

    key: str
    value: str
    is_encrypted: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class CacheEntry(BaseModel):
    """One cached parser-code version for a source key."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_key: str
    version: int = Field(ge=1)
    code: str
    detected_format: str = "Unknown"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=_utcnow)
    success_count: int = Field(default=0, ge=0)
    fail_count: int = Field(default=0, ge=0)

    @property
    def trials(self) -> int:
        return self.success_count + self.fail_count

    @property
    def success_rate(self) -> float | None:
        """Fraction of successful trials, None before any trial."""
        if self.trials == 0:
            return None
        return self.success_count / self.trials

    def to_payload(self) -> str:
        """Serialize the stored JSON value (camelCase, no row-key fields)."""
        return self.model_dump_json(by_alias=True, exclude=_ROW_ONLY_FIELDS)


class EntryMeta(BaseModel):
    """Metadata supplied when saving a new version."""

    detected_format: str = "Unknown"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class KeySummary(BaseModel):
    """Per-key aggregate returned by ``VersionStore.list_keys``."""

    key: str
    version_count: int
    latest_version: int
