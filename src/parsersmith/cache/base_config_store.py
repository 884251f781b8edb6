# src/parsersmith/cache/base_config_store.py — v1
"""Abstract key-value config store interface.

The parser cache shares the application's generic key-value table:
``(key PRIMARY KEY, value, is_encrypted, created_at, updated_at)``.
Backends return raw string values; parsing and corruption handling belong
to the caller. I/O errors propagate unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from parsersmith.cache.models import ConfigRow


class BaseConfigStore(ABC):
    """Unified interface for key-value storage backends."""

    @abstractmethod
    async def get(self, key: str) -> ConfigRow | None:
        """Retrieve one row by exact key."""

    @abstractmethod
    async def scan(self, prefix: str) -> list[ConfigRow]:
        """Return every row whose key starts with ``prefix`` (literal match)."""

    @abstractmethod
    async def insert(self, key: str, value: str) -> None:
        """Insert a new row.

        Raises:
            KeyConflictError: If the key already exists.
        """

    @abstractmethod
    async def increment_field(self, key: str, field: str, amount: int = 1) -> bool:
        """Increment an integer field inside the row's JSON object value.

        Returns False, without raising, when the row is missing or its value
        is not a JSON object.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a row. Returns True if a row was removed."""

    def close(self) -> None:
        """Release backend resources."""
