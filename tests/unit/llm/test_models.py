# tests/unit/llm/test_models.py — v1
"""Tests for llm/models.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from parsersmith.llm.models import LLMResponse, Message


def _response(**overrides) -> LLMResponse:
    fields = dict(content="{}", input_tokens=1, output_tokens=2, model="m", provider="p", latency_ms=3)
    fields.update(overrides)
    return LLMResponse(**fields)


class TestMessage:
    def test_roles(self):
        assert Message(role="assistant", content="x").role == "assistant"
        with pytest.raises(ValidationError):
            Message(role="system", content="x")


class TestLLMResponse:
    def test_defaults(self):
        r = _response()
        assert r.cache_read_tokens == 0
        assert r.stop_reason == "end"
        assert not r.truncated

    def test_truncated(self):
        assert _response(stop_reason="max_tokens").truncated
        assert not _response(stop_reason="other").truncated

    def test_unknown_stop_reason_rejected(self):
        with pytest.raises(ValidationError):
            _response(stop_reason="length")
