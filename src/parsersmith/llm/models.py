# src/parsersmith/llm/models.py — v1
"""Conversation and response types shared by every provider adapter."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

# Provider stop reasons are folded into these three values
StopReason = Literal["end", "max_tokens", "other"]


class Message(BaseModel):
    """One turn of the generation conversation.

    The system prompt travels separately; feedback rounds append an
    ``assistant`` turn (the rejected answer) followed by a ``user`` turn.
    """

    role: Literal["user", "assistant"]
    content: str


class LLMResponse(BaseModel):
    """Provider-neutral completion result."""

    content: str
    input_tokens: int
    output_tokens: int
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    model: str
    provider: str
    latency_ms: int
    stop_reason: StopReason = "end"
    raw_response: Any = None

    @property
    def truncated(self) -> bool:
        """The answer hit the output token limit and is likely incomplete."""
        return self.stop_reason == "max_tokens"
