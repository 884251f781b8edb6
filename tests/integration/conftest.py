# tests/integration/conftest.py — v1
"""Fixtures for integration tests.

Redis comes from ``TEST_REDIS_URL`` when set, otherwise from a throwaway
container started once per session. The container is addressed by its bridge
network IP so the suite also runs inside a devcontainer using the host's
Docker daemon, where the mapped localhost port is unreachable.
"""

from __future__ import annotations

import logging
import os
import time

import pytest

logger = logging.getLogger(__name__)

REDIS_IMAGE = "redis:7-alpine"
REDIS_PORT = 6379


def pytest_configure(config):
    config.addinivalue_line("markers", "redis: needs a Redis server (container or TEST_REDIS_URL)")
    config.addinivalue_line("markers", "subprocess: spawns the local parser runner")


def _bridge_ip(container, attempts: int = 10) -> str:
    """First non-empty network IP of a started container."""
    wrapped = container.get_wrapped_container()
    for attempt in range(1, attempts + 1):
        wrapped.reload()
        networks = wrapped.attrs.get("NetworkSettings", {}).get("Networks", {})
        ip = next((n.get("IPAddress") for n in networks.values() if n.get("IPAddress")), "")
        if ip:
            return ip
        logger.debug("Container %s has no IP yet (attempt %d)", wrapped.short_id, attempt)
        time.sleep(0.5)
    raise RuntimeError(f"Container {wrapped.short_id} got no bridge IP")


def _docker_available() -> bool:
    try:
        import docker

        docker.from_env().ping()
    except Exception:  # noqa: BLE001 - any failure means no usable daemon
        return False
    return True


@pytest.fixture(scope="session")
def redis_url():
    configured = os.environ.get("TEST_REDIS_URL")
    if configured:
        yield configured
        return

    if not _docker_available():
        pytest.skip("Docker not available and TEST_REDIS_URL not set")

    from testcontainers.core.container import DockerContainer
    from testcontainers.core.waiting_utils import wait_for_logs

    container = DockerContainer(REDIS_IMAGE).with_exposed_ports(REDIS_PORT)
    container.start()
    try:
        wait_for_logs(container, predicate=r"Ready to accept connections", timeout=30)
        url = f"redis://{_bridge_ip(container)}:{REDIS_PORT}/0"
        logger.info("Redis container ready at %s", url)
        yield url
    finally:
        container.stop()


@pytest.fixture
def redis_config_store(redis_url):
    from parsersmith.cache.redis_store import RedisConfigStore

    store = RedisConfigStore(redis_url=redis_url)
    store._client.flushdb()
    yield store
    store._client.flushdb()
    store.close()
