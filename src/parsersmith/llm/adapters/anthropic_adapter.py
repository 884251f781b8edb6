# src/parsersmith/llm/adapters/anthropic_adapter.py — v1
"""Anthropic Messages API adapter.

Structured output is a forced call to a single tool whose input schema is the
requested model. The system prompt is marked cacheable: feedback rounds resend
it unchanged with a longer conversation.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from pydantic import BaseModel

from parsersmith.llm.base_client import BaseLLMClient
from parsersmith.llm.models import LLMResponse, Message, StopReason

logger = logging.getLogger(__name__)

_STOP_REASONS: dict[str, StopReason] = {
    "end_turn": "end",
    "tool_use": "end",
    "stop_sequence": "end",
    "max_tokens": "max_tokens",
}


class AnthropicAdapter(BaseLLMClient):
    """Claude models through the official SDK."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        timeout_s: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_s = timeout_s
        self.__client = None

    @property
    def _client(self):
        """SDK client, created on first use. Retries are left to ``with_retry``."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(
                api_key=self._api_key or "",
                timeout=self._timeout_s,
                max_retries=0,
            )
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        request: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [m.model_dump() for m in messages],
        }
        if system:
            request["system"] = [
                {"type": "text", "text": system, "cache_control": {"type": "ephemeral"}}
            ]
        tool_name = None
        if response_format is not None:
            tool_name = response_format.__name__
            request["tools"] = [{
                "name": tool_name,
                "description": (response_format.__doc__ or "Structured answer").strip(),
                "input_schema": response_format.model_json_schema(),
            }]
            request["tool_choice"] = {"type": "tool", "name": tool_name}

        start = time.monotonic()
        response = await self._client.messages.create(**request)
        latency_ms = int((time.monotonic() - start) * 1000)

        usage = response.usage
        raw_stop = getattr(response, "stop_reason", None) or "end_turn"
        stop_reason = _STOP_REASONS.get(raw_stop, "other")
        if stop_reason == "max_tokens":
            logger.warning("Claude response hit max_tokens=%d", max_tokens)

        return LLMResponse(
            content=self._answer_text(response, tool_name),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cache_read_tokens=getattr(usage, "cache_read_input_tokens", 0) or 0,
            cache_write_tokens=getattr(usage, "cache_creation_input_tokens", 0) or 0,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            stop_reason=stop_reason,
            raw_response=response,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @staticmethod
    def _answer_text(response: Any, tool_name: str | None) -> str:
        """JSON of the forced tool's input, or the concatenated text blocks."""
        texts: list[str] = []
        for block in response.content:
            kind = getattr(block, "type", None)
            if tool_name and kind == "tool_use":
                return json.dumps(block.input)
            if kind == "text":
                texts.append(block.text)
        return "".join(texts)
