# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides sample statements with matching parser bodies, a scripted LLM
client, a mocked executor and temp-directory backed stores.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from parsersmith.cache.sqlite_store import SqliteConfigStore
from parsersmith.cache.version_store import VersionStore
from parsersmith.config.settings import Settings
from parsersmith.core.models import ExecutionResult, Holding, Transaction
from parsersmith.llm.base_client import BaseLLMClient
from parsersmith.llm.models import LLMResponse, Message
from parsersmith.logging.context import clear_context
from parsersmith.sandbox.executor_factory import reset_executor


# === FIXTURES: Sample statements and parsers ===


TRANSACTION_TEXT = """\
ACME BANK - ACCOUNT STATEMENT
Statement period: 01 Mar 2024 to 31 Mar 2024
2024-03-01 | SALARY MARCH | CR | 50,000.00 | 150,000.00
2024-03-03 | RENT | DR | 20,000.00 | 130,000.00
2024-03-05 | GROCERIES | DR | 2,500.50 | 127,499.50
Total debits: 22,500.50  Total credits: 50,000.00
"""

TRANSACTION_CODE = """\
rows = []
for line in text.splitlines():
    parts = [p.strip() for p in line.split("|")]
    if len(parts) != 5:
        continue
    rows.append({
        "date": parts[0],
        "description": parts[1],
        "type": "credit" if parts[2] == "CR" else "debit",
        "amount": float(parts[3].replace(",", "")),
        "balance": float(parts[4].replace(",", "")),
    })
return rows
"""

HOLDING_TEXT = """\
CONSOLIDATED ACCOUNT STATEMENT
HOLDING | Reliance Industries Ltd | stock | 10 | 2500.00 | 25000.00 | 20000.00
HOLDING | Public Provident Fund | ppf | - | - | 150000.00 | 120000.00
Total value: 175000.00
"""

HOLDING_CODE = """\
holdings = []
for line in text.splitlines():
    if not line.startswith("HOLDING"):
        continue
    cells = [c.strip() for c in line.split("|")]
    holdings.append({
        "name": cells[1],
        "investment_type": cells[2],
        "units": None if cells[3] == "-" else float(cells[3]),
        "current_value": float(cells[5]),
        "invested_value": float(cells[6]),
        "currency": "INR",
    })
return holdings
"""


@pytest.fixture
def transaction_text() -> str:
    return TRANSACTION_TEXT


@pytest.fixture
def transaction_code() -> str:
    """Parser body that extracts every row of ``transaction_text``."""
    return TRANSACTION_CODE


@pytest.fixture
def holding_text() -> str:
    return HOLDING_TEXT


@pytest.fixture
def holding_code() -> str:
    """Parser body that extracts both holdings of ``holding_text``."""
    return HOLDING_CODE


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """What ``transaction_code`` yields for ``transaction_text``."""
    return [
        Transaction(date="2024-03-01", amount=50000.0, type="credit",
                    description="SALARY MARCH", balance=150000.0),
        Transaction(date="2024-03-03", amount=20000.0, type="debit",
                    description="RENT", balance=130000.0),
        Transaction(date="2024-03-05", amount=2500.5, type="debit",
                    description="GROCERIES", balance=127499.5),
    ]


@pytest.fixture
def sample_holdings() -> list[Holding]:
    """What ``holding_code`` yields for ``holding_text``."""
    return [
        Holding(investment_type="stock", name="Reliance Industries Ltd",
                current_value=25000.0, units=10.0, invested_value=20000.0, currency="INR"),
        Holding(investment_type="ppf", name="Public Provident Fund",
                current_value=150000.0, invested_value=120000.0, currency="INR"),
    ]


# === FIXTURES: Settings and storage ===


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from .env files and remote backends."""
    return Settings(
        _env_file=None,
        store_root=tmp_path / "store",
        e2b_api_key="",
        anthropic_api_key="",
        openai_api_key="",
        llm_transaction_generator="",
        llm_holding_generator="",
    )


@pytest.fixture
def config_store(tmp_path: Path):
    """SQLite key-value store in a temp directory."""
    store = SqliteConfigStore(db_path=tmp_path / "config.db")
    yield store
    store.close()


@pytest.fixture
def version_store(config_store) -> VersionStore:
    """Transaction-namespace version store without pruning."""
    return VersionStore(config_store, namespace="parser_code")


# === FIXTURES: Executor and LLM doubles ===


@pytest.fixture
def mock_executor() -> MagicMock:
    """Executor double; set ``execute.side_effect`` / ``return_value`` per test."""
    executor = MagicMock()
    executor.backend_name = "mock"
    executor.execute = AsyncMock(
        return_value=ExecutionResult.failure("not configured", kind="runtime")
    )
    return executor


class ScriptedLLMClient(BaseLLMClient):
    """LLM double replaying queued responses and recording every call."""

    def __init__(self) -> None:
        self.responses: list[str | LLMResponse | Exception] = []
        self.calls: list[dict] = []

    def set_responses(self, responses: list[str | LLMResponse | Exception]) -> None:
        self.responses = list(responses)

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        response_format=None,
    ) -> LLMResponse:
        self.calls.append({
            "messages": [m.model_copy() for m in messages],
            "system": system,
            "response_format": response_format,
        })
        if not self.responses:
            raise AssertionError("ScriptedLLMClient ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, LLMResponse):
            return response
        return LLMResponse(
            content=response,
            input_tokens=100,
            output_tokens=50,
            model="scripted",
            provider="scripted",
            latency_ms=1,
        )

    @property
    def provider_name(self) -> str:
        return "scripted"


@pytest.fixture
def scripted_llm() -> ScriptedLLMClient:
    return ScriptedLLMClient()


@pytest.fixture
def generated():
    """Build the structured JSON the generator expects from the LLM."""

    def _make(code: str, detected_format: str = "Pipe table", confidence: float = 0.9) -> str:
        return json.dumps(
            {"code": code, "detected_format": detected_format, "confidence": confidence}
        )

    return _make


# === Isolation ===


@pytest.fixture(autouse=True)
def _isolate_process_state():
    clear_context()
    reset_executor()
    yield
    clear_context()
    reset_executor()
