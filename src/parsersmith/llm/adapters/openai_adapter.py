# src/parsersmith/llm/adapters/openai_adapter.py — v1
"""OpenAI Chat Completions adapter with JSON-schema response formats."""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel

from parsersmith.llm.base_client import BaseLLMClient
from parsersmith.llm.models import LLMResponse, Message, StopReason

_FINISH_REASONS: dict[str, StopReason] = {"stop": "end", "length": "max_tokens"}


class OpenAIAdapter(BaseLLMClient):
    """GPT models through the official SDK."""

    def __init__(self, model: str = "gpt-4o", api_key: str = "", timeout_s: float = 120.0):
        self._model = model
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError("openai package required: pip install openai") from e
            self._client = openai.AsyncOpenAI(
                api_key=self._api_key, timeout=self._timeout_s, max_retries=0
            )
        return self._client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        chat = [{"role": "system", "content": system}] if system else []
        chat.extend(m.model_dump() for m in messages)

        request: dict[str, Any] = {
            "model": self._model,
            "messages": chat,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format is not None:
            request["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": response_format.__name__,
                    "schema": response_format.model_json_schema(),
                },
            }

        started = time.monotonic()
        completion = await self._get_client().chat.completions.create(**request)
        latency_ms = int((time.monotonic() - started) * 1000)

        choice = completion.choices[0]
        usage = completion.usage
        cached = getattr(getattr(usage, "prompt_tokens_details", None), "cached_tokens", 0)
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            cache_read_tokens=cached or 0,
            model=getattr(completion, "model", None) or self._model,
            provider="openai",
            latency_ms=latency_ms,
            stop_reason=_FINISH_REASONS.get(getattr(choice, "finish_reason", None) or "stop", "other"),
            raw_response=completion,
        )

    @property
    def provider_name(self) -> str:
        return "openai"
