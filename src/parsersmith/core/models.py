# src/parsersmith/core/models.py — v1
"""Core domain models: records, execution results, expected summaries, outcomes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from parsersmith.core.errors import ExecutionErrorKind

ParsingMode = Literal["transaction", "holding"]
FileType = Literal["pdf", "csv", "xlsx"]

PARSING_MODES: tuple[ParsingMode, ...] = ("transaction", "holding")
FILE_TYPES: tuple[FileType, ...] = ("pdf", "csv", "xlsx")


class Transaction(BaseModel):
    """Bank / credit-card transaction extracted by a parser."""

    date: str
    amount: float
    type: Literal["credit", "debit"]
    description: str
    balance: float | None = None


class Holding(BaseModel):
    """Investment holding extracted by a parser."""

    investment_type: str
    name: str
    current_value: float
    units: float | None = None
    symbol: str | None = None
    isin: str | None = None
    average_cost: float | None = None
    current_price: float | None = None
    invested_value: float | None = None
    folio_number: str | None = None
    maturity_date: str | None = None
    interest_rate: float | None = None
    currency: str | None = None


Record = Transaction | Holding


class ExecutionResult(BaseModel):
    """Outcome of running one parser program against one document."""

    success: bool
    data: list[Transaction] | list[Holding] | None = None
    error: str | None = None
    error_kind: ExecutionErrorKind | None = None
    execution_time_ms: int = 0
    skipped_records: int = 0

    @classmethod
    def failure(
        cls, error: str, kind: ExecutionErrorKind, execution_time_ms: int = 0
    ) -> ExecutionResult:
        return cls(
            success=False, error=error, error_kind=kind,
            execution_time_ms=execution_time_ms,
        )


class ExpectedSummary(BaseModel):
    """Caller-supplied ground truth for the current document. Never persisted.

    Transaction statements fill the debit/credit fields; investment statements
    fill the holdings fields. Unset fields are not checked.
    """

    # Transaction statements
    debit_count: int | None = None
    credit_count: int | None = None
    total_debits: float | None = None
    total_credits: float | None = None
    opening_balance: float | None = None
    closing_balance: float | None = None

    # Investment statements
    holdings_count: int | None = None
    total_current: float | None = None
    total_invested: float | None = None

    def has_validation_data(self, mode: ParsingMode) -> bool:
        """Whether any field checked for this mode is set."""
        if mode == "holding":
            return self.holdings_count is not None or self.total_current is not None
        return any(
            v is not None
            for v in (
                self.debit_count, self.credit_count,
                self.total_debits, self.total_credits,
            )
        )


class TrialOutcome(BaseModel):
    """Result of trying cached versions (and possibly one regeneration)."""

    success: bool
    data: list[Transaction] | list[Holding] | None = None
    used_version: int | None = None
    tried_versions: list[int] = Field(default_factory=list)
    validation_passed: bool | None = None
    generated: bool = False
    error: str | None = None


class ParseOutcome(BaseModel):
    """Caller-facing result of parsing one document."""

    source_key: str
    mode: ParsingMode
    records: list[Transaction] | list[Holding]
    used_version: int | None = None
    tried_versions: list[int] = Field(default_factory=list)
    generated: bool = False
    cached: bool = True
    validation_passed: bool | None = None
