# src/parsersmith/llm/client_factory.py — v1
"""Build an LLM client from a provider name.

Adapters are imported on demand, so only the SDK of the provider actually
configured needs to be installed.
"""

from __future__ import annotations

import importlib
import logging
from typing import NamedTuple

from parsersmith.config.settings import Settings
from parsersmith.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)


class ProviderSpec(NamedTuple):
    class_path: str
    api_key_setting: str | None


_PROVIDERS: dict[str, ProviderSpec] = {
    "anthropic": ProviderSpec(
        "parsersmith.llm.adapters.anthropic_adapter.AnthropicAdapter", "anthropic_api_key"
    ),
    "openai": ProviderSpec(
        "parsersmith.llm.adapters.openai_adapter.OpenAIAdapter", "openai_api_key"
    ),
}


class UnsupportedProviderError(ValueError):
    """The provider name has no registered adapter."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the adapter registered for ``provider``.

    API key and request timeout come from ``settings`` unless given in
    ``kwargs``.

    Raises:
        UnsupportedProviderError: Unknown provider.
    """
    spec = _PROVIDERS.get(provider)
    if spec is None:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDERS))}"
        )

    options = dict(kwargs, model=model)
    if settings is not None:
        if spec.api_key_setting:
            options.setdefault("api_key", getattr(settings, spec.api_key_setting))
        options.setdefault("timeout_s", settings.llm_request_timeout_s)

    module_path, class_name = spec.class_path.rsplit(".", 1)
    adapter_cls = getattr(importlib.import_module(module_path), class_name)
    logger.debug("Creating LLM client %s:%s", provider, model)
    return adapter_cls(**options)


def register_provider(name: str, class_path: str, api_key_setting: str | None = None) -> None:
    """Plug in another adapter implementing BaseLLMClient."""
    _PROVIDERS[name] = ProviderSpec(class_path, api_key_setting)
    logger.info("Registered LLM provider %s -> %s", name, class_path)
