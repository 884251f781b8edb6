# src/parsersmith/engine/summary_check.py — v1
"""Compare extracted records with a statement's printed summary.

Counts must match exactly; totals may differ by a configurable absolute
tolerance (rounding in the statement, a stray fee line). Balances and the
invested total are informational: many holdings (deposits, PPF) carry no cost
basis, so they are never checked.
"""

from __future__ import annotations

from dataclasses import dataclass

from parsersmith.core.errors import ValidationMismatch
from parsersmith.core.models import ExpectedSummary, Holding, ParsingMode, Transaction


@dataclass(frozen=True)
class TransactionTotals:
    debit_count: int
    credit_count: int
    total_debits: float
    total_credits: float


@dataclass(frozen=True)
class HoldingTotals:
    holdings_count: int
    total_current: float


def transaction_totals(records: list[Transaction]) -> TransactionTotals:
    debits = [r.amount for r in records if r.type == "debit"]
    credits = [r.amount for r in records if r.type == "credit"]
    return TransactionTotals(
        debit_count=len(debits),
        credit_count=len(credits),
        total_debits=round(sum(debits), 2),
        total_credits=round(sum(credits), 2),
    )


def holding_totals(records: list[Holding]) -> HoldingTotals:
    return HoldingTotals(
        holdings_count=len(records),
        total_current=round(sum(r.current_value for r in records), 2),
    )


def _count_issue(label: str, actual: int, expected: int | None) -> str | None:
    if expected is None or actual == expected:
        return None
    return f"{label}: extracted {actual}, expected {expected} (diff: {actual - expected})"


def _total_issue(
    label: str, actual: float, expected: float | None, tolerance: float
) -> str | None:
    if expected is None:
        return None
    diff = abs(actual - expected)
    if diff <= tolerance:
        return None
    return f"{label}: extracted {actual}, expected {expected} (diff: {diff:.2f})"


def compare_to_summary(
    records: list,
    expected: ExpectedSummary,
    mode: ParsingMode,
    amount_tolerance: float = 10.0,
    value_tolerance: float = 100.0,
) -> list[str]:
    """Return mismatch descriptions; empty when everything checked agrees."""
    if mode == "holding":
        h = holding_totals(records)
        issues = [
            _count_issue("Holdings count", h.holdings_count, expected.holdings_count),
            _total_issue("Total current", h.total_current, expected.total_current, value_tolerance),
        ]
    else:
        t = transaction_totals(records)
        issues = [
            _count_issue("Debit count", t.debit_count, expected.debit_count),
            _count_issue("Credit count", t.credit_count, expected.credit_count),
            _total_issue("Total debits", t.total_debits, expected.total_debits, amount_tolerance),
            _total_issue("Total credits", t.total_credits, expected.total_credits, amount_tolerance),
        ]
    return [issue for issue in issues if issue is not None]


def ensure_matches_summary(
    records: list,
    expected: ExpectedSummary,
    mode: ParsingMode,
    amount_tolerance: float = 10.0,
    value_tolerance: float = 100.0,
) -> None:
    """Raise ValidationMismatch when the records disagree with ``expected``."""
    issues = compare_to_summary(records, expected, mode, amount_tolerance, value_tolerance)
    if issues:
        raise ValidationMismatch(issues)
