# tests/unit/sandbox/test_shape.py — v1
"""Tests for sandbox/shape.py — raw output validation and normalization."""

from __future__ import annotations

import pytest

from parsersmith.sandbox.shape import (
    MAX_TEXT_LENGTH,
    is_valid_holding,
    is_valid_transaction,
    shape_output,
)


def _txn(**overrides):
    item = {"date": "2024-03-01", "amount": 10.5, "type": "debit", "description": " Coffee ", "balance": 90}
    item.update(overrides)
    return item


def _holding(**overrides):
    item = {"investment_type": "Mutual_Fund", "name": "Index Fund", "current_value": 1000, "units": 12.5}
    item.update(overrides)
    return item


class TestTransactionShape:
    def test_valid(self):
        assert is_valid_transaction(_txn())

    @pytest.mark.parametrize(
        "overrides",
        [
            {"date": "01/03/2024"},
            {"amount": 0},
            {"amount": -5},
            {"amount": True},
            {"amount": "10.5"},
            {"amount": float("nan")},
            {"amount": float("inf")},
            {"type": "refund"},
            {"description": None},
        ],
    )
    def test_invalid(self, overrides):
        assert not is_valid_transaction(_txn(**overrides))

    def test_not_a_dict(self):
        assert not is_valid_transaction(["2024-03-01", 10])

    def test_normalization(self):
        result = shape_output([_txn(description="x" * 900, balance="n/a")], "transaction", 100)
        record = result.data[0]
        assert len(record.description) == MAX_TEXT_LENGTH
        assert record.balance is None

    def test_description_stripped(self):
        result = shape_output([_txn()], "transaction", 100)
        assert result.data[0].description == "Coffee"
        assert result.data[0].balance == 90.0


class TestHoldingShape:
    def test_valid(self):
        assert is_valid_holding(_holding())

    def test_units_optional(self):
        assert is_valid_holding(_holding(units=None))

    @pytest.mark.parametrize(
        "overrides",
        [{"name": "  "}, {"investment_type": None}, {"current_value": "1000"}, {"units": False}],
    )
    def test_invalid(self, overrides):
        assert not is_valid_holding(_holding(**overrides))

    def test_normalization(self):
        result = shape_output(
            [_holding(currency="inr", symbol=" ", isin="INF123", interest_rate=True)],
            "holding",
            100,
        )
        record = result.data[0]
        assert record.investment_type == "mutual_fund"
        assert record.currency == "INR"
        assert record.symbol is None
        assert record.isin == "INF123"
        assert record.interest_rate is None

    def test_unknown_currency_dropped(self):
        result = shape_output([_holding(currency="XYZ")], "holding", 100)
        assert result.data[0].currency is None


class TestShapeOutput:
    def test_non_list_is_invalid_output(self):
        result = shape_output({"rows": []}, "transaction", 100, execution_time_ms=7)
        assert not result.success
        assert result.error_kind == "invalid_output"
        assert "dict" in result.error
        assert result.execution_time_ms == 7

    def test_invalid_items_counted(self):
        result = shape_output([_txn(), "junk", _txn(type="?")], "transaction", 100)
        assert result.success
        assert len(result.data) == 1
        assert result.skipped_records == 2

    def test_empty_list_is_success(self):
        result = shape_output([], "holding", 100)
        assert result.success
        assert result.data == []

    def test_record_cap(self):
        result = shape_output([_txn() for _ in range(10)], "transaction", 3)
        assert len(result.data) == 3
