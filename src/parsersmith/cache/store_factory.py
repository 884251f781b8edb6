# src/parsersmith/cache/store_factory.py — v1
"""Factory for key-value store instantiation (STORE_BACKEND)."""

from __future__ import annotations

from parsersmith.cache.base_config_store import BaseConfigStore
from parsersmith.config.settings import Settings

_DEFAULT_ROOT = "~/.parsersmith/store"


def create_config_store(settings: Settings | None = None) -> BaseConfigStore:
    """Instantiate the configured key-value backend.

    Args:
        settings: Application settings. Defaults to SQLite under ~/.parsersmith.

    Returns:
        Configured BaseConfigStore implementation.
    """
    backend = "sqlite" if settings is None else settings.store_backend
    store_root = _DEFAULT_ROOT if settings is None else str(settings.store_root)

    if backend == "sqlite":
        from parsersmith.cache.sqlite_store import SqliteConfigStore
        return SqliteConfigStore(db_path=f"{store_root}/parsersmith.db")

    if backend == "json":
        from parsersmith.cache.json_store import JsonConfigStore
        return JsonConfigStore(store_root=store_root)

    if backend == "redis":
        from parsersmith.cache.redis_store import RedisConfigStore
        if settings is None or not settings.store_redis_url:
            raise ValueError(
                "STORE_REDIS_URL must be set when STORE_BACKEND=redis"
            )
        return RedisConfigStore(redis_url=settings.store_redis_url)

    raise ValueError(f"Unsupported store backend: {backend!r}")
