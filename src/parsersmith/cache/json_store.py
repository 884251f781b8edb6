# src/parsersmith/cache/json_store.py — v1
"""JSON file-based key-value store (STORE_BACKEND=json).

Stores each row as an individual JSON file under STORE_ROOT. Intended for
single-process development setups: counter increments are serialized by an
in-process lock only.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote, unquote

from pydantic import ValidationError

from parsersmith.cache.base_config_store import BaseConfigStore
from parsersmith.cache.models import ConfigRow
from parsersmith.core.errors import KeyConflictError

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class JsonConfigStore(BaseConfigStore):
    """File-based key-value store using one JSON file per row."""

    def __init__(self, store_root: Path | str) -> None:
        self._root = Path(store_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> ConfigRow | None:
        """Retrieve one row by key."""
        path = self._row_path(key)
        if not path.exists():
            return None
        return self._read(path)

    async def scan(self, prefix: str) -> list[ConfigRow]:
        """Return rows whose decoded key starts with prefix."""
        rows: list[ConfigRow] = []
        for path in sorted(self._root.glob(f"*{_SUFFIX}")):
            key = unquote(path.name[: -len(_SUFFIX)])
            if not key.startswith(prefix):
                continue
            row = self._read(path)
            if row is not None:
                rows.append(row)
        return rows

    async def insert(self, key: str, value: str) -> None:
        """Create the row file exclusively."""
        row = ConfigRow(key=key, value=value)
        try:
            with self._row_path(key).open("x", encoding="utf-8") as fh:
                fh.write(row.model_dump_json(indent=2))
        except FileExistsError as e:
            raise KeyConflictError(key) from e

    async def increment_field(self, key: str, field: str, amount: int = 1) -> bool:
        """Read-modify-write under the store lock."""

        def bump(old: str) -> str | None:
            try:
                data = json.loads(old)
            except json.JSONDecodeError:
                return None
            if not isinstance(data, dict):
                return None
            try:
                data[field] = int(data.get(field) or 0) + amount
            except (TypeError, ValueError):
                return None
            return json.dumps(data)

        async with self._lock:
            return self._replace_value(key, bump)

    async def delete(self, key: str) -> bool:
        """Remove a row file."""
        path = self._row_path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _replace_value(self, key: str, transform) -> bool:
        path = self._row_path(key)
        if not path.exists():
            return False
        row = self._read(path)
        if row is None:
            return False
        new_value = transform(row.value)
        if new_value is None:
            logger.warning("Row %s does not hold a JSON object; left unchanged", key)
            return False
        updated = row.model_copy(
            update={"value": new_value, "updated_at": datetime.now(timezone.utc)}
        )
        path.write_text(updated.model_dump_json(indent=2), encoding="utf-8")
        return True

    @staticmethod
    def _read(path: Path) -> ConfigRow | None:
        """Read one row file. Malformed files are skipped; I/O errors propagate."""
        text = path.read_text(encoding="utf-8")
        try:
            return ConfigRow.model_validate_json(text)
        except ValidationError as e:
            logger.warning("Skipping unreadable row file %s: %s", path.name, e)
            return None

    def _row_path(self, key: str) -> Path:
        """Return the file path for a row key (percent-encoded)."""
        return self._root / f"{quote(key, safe='')}{_SUFFIX}"
