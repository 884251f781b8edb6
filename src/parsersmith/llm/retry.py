# src/parsersmith/llm/retry.py — v1
"""Backoff for transient LLM transport failures.

Only provider-side trouble (rate limits, overload, timeouts, 5xx) is retried
here. A bad answer is not an error at this level: the generator feeds it back
to the model in its own bounded loop.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

# Never wait longer than this, whatever a Retry-After header says
MAX_DELAY_S = 60.0


class LLMRetryExhausted(Exception):
    """The call failed with a non-retryable error or ran out of retries."""

    def __init__(self, component: str, error_type: str, attempts: int, last_error: Exception):
        self.component = component
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"LLM call for '{component}' failed after {attempts} attempts "
            f"({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Backoff schedule for one class of errors."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=3, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=2, base_delay_s=1.0, backoff_factor=1.0),
    "server_error": RetryConfig(max_retries=3, base_delay_s=5.0),
    "overloaded": RetryConfig(max_retries=3, base_delay_s=10.0),
}

# (error type, status codes, class-name fragments, message fragments); first match wins
_CLASSIFIERS: tuple[tuple[str, frozenset[int], tuple[str, ...], tuple[str, ...]], ...] = (
    ("rate_limit", frozenset({429}), ("ratelimit",), ("429", "rate limit")),
    ("overloaded", frozenset({529}), ("overloaded",), ("overloaded", "529")),
    ("timeout", frozenset({408}), ("timeout",), ("timed out",)),
    ("server_error", frozenset({500, 502, 503, 504}), ("internalserver",),
     ("500", "502", "503", "504")),
)


def classify_error(error: Exception) -> str:
    """Map an SDK exception to a retry class, or ``"unknown"``."""
    status = getattr(error, "status_code", None)
    name = type(error).__name__.lower()
    msg = str(error).lower()

    for error_type, codes, names, fragments in _CLASSIFIERS:
        if status in codes:
            return error_type
        if any(n in name for n in names) or any(f in msg for f in fragments):
            return error_type
    return "unknown"


def _retry_after(error: Exception) -> float | None:
    """Seconds requested by the provider's Retry-After header, if any."""
    headers = getattr(getattr(error, "response", None), "headers", None)
    if not headers:
        return None
    try:
        return float(headers.get("retry-after"))
    except (TypeError, ValueError):
        return None


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    component: str = "unknown",
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Await ``fn(*args, **kwargs)``, retrying transient failures.

    A provider's Retry-After wins over the computed backoff, capped at
    ``MAX_DELAY_S``.

    Raises:
        LLMRetryExhausted: On a non-retryable error or when retries run out.
    """
    configs = retry_configs if retry_configs is not None else DEFAULT_RETRY_CONFIGS
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            attempts += 1
            error_type = classify_error(e)
            config = configs.get(error_type)
            if config is None or attempts > config.max_retries:
                raise LLMRetryExhausted(component, error_type, attempts, e) from e

            requested = _retry_after(e)
            delay = requested if requested is not None else _compute_delay(config, attempts - 1)
            delay = min(delay, MAX_DELAY_S)
            logger.warning(
                "LLM call for '%s' hit %s (attempt %d/%d), retrying in %.1fs",
                component, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)
