# src/parsersmith/cache/redis_store.py — v1
"""Redis-based key-value store (STORE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments: inserts use SET NX and counter
increments run inside an optimistic WATCH/MULTI transaction.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from parsersmith.cache.base_config_store import BaseConfigStore
from parsersmith.cache.models import ConfigRow
from parsersmith.core.errors import KeyConflictError

logger = logging.getLogger(__name__)

_KEY_PREFIX = "parsersmith:config:"
_INDEX_KEY = "parsersmith:config:__index__"


class RedisConfigStore(BaseConfigStore):
    """Redis-backed key-value store."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> ConfigRow | None:
        """Retrieve one row by key."""
        return self._decode(key, self._client.get(f"{_KEY_PREFIX}{key}"))

    async def scan(self, prefix: str) -> list[ConfigRow]:
        """Scan the key index; Redis has no ordered prefix index on plain keys."""
        rows: list[ConfigRow] = []
        for key in sorted(self._client.smembers(_INDEX_KEY)):
            if not key.startswith(prefix):
                continue
            row = await self.get(key)
            if row is not None:
                rows.append(row)
        return rows

    async def insert(self, key: str, value: str) -> None:
        """SET NX: fails when the key already exists."""
        row = ConfigRow(key=key, value=value)
        created = self._client.set(f"{_KEY_PREFIX}{key}", row.model_dump_json(), nx=True)
        if not created:
            raise KeyConflictError(key)
        self._client.sadd(_INDEX_KEY, key)

    async def increment_field(self, key: str, field: str, amount: int = 1) -> bool:
        """Optimistic-locking increment of a JSON counter."""

        def bump(old: str) -> str | None:
            try:
                data = json.loads(old)
                if not isinstance(data, dict):
                    return None
                data[field] = int(data.get(field) or 0) + amount
            except (json.JSONDecodeError, TypeError, ValueError):
                return None
            return json.dumps(data)

        return self._transact(key, bump)

    async def delete(self, key: str) -> bool:
        """Remove a row and its index entry."""
        removed = self._client.delete(f"{_KEY_PREFIX}{key}")
        self._client.srem(_INDEX_KEY, key)
        return bool(removed)

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()

    def _transact(self, key: str, transform) -> bool:
        """Apply ``transform`` to the row value under WATCH, retrying on races."""
        redis_key = f"{_KEY_PREFIX}{key}"
        outcome = {"changed": False}

        def apply(pipe) -> None:
            outcome["changed"] = False
            row = self._decode(key, pipe.get(redis_key))
            if row is None:
                return
            new_value = transform(row.value)
            if new_value is None:
                logger.warning("Row %s does not hold a JSON object; left unchanged", key)
                return
            updated = row.model_copy(
                update={"value": new_value, "updated_at": datetime.now(timezone.utc)}
            )
            pipe.multi()
            pipe.set(redis_key, updated.model_dump_json())
            outcome["changed"] = True

        self._client.transaction(apply, redis_key)
        return outcome["changed"]

    @staticmethod
    def _decode(key: str, data: str | None) -> ConfigRow | None:
        if data is None:
            return None
        try:
            return ConfigRow.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Failed to deserialize row %s: %s", key, e)
            return None
