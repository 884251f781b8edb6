# src/parsersmith/llm/base_client.py — v1
"""Interface the code generator talks to, whatever the provider."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from parsersmith.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """One configured provider and model."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Run one completion.

        With ``response_format`` the adapter asks the provider for output
        constrained to that model's JSON schema and returns it as a JSON
        string in ``content``. Validation is left to the caller.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Registry name of the provider."""

    @property
    def model_name(self) -> str:
        return getattr(self, "_model", "unknown")
