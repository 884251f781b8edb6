# src/parsersmith/sandbox/shape.py — v1
"""Shape validation and normalization of raw parser output.

Shared by every execution backend. A non-list result is a failure; items
that do not look like a record of the requested mode are skipped and counted.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from parsersmith.core.models import ExecutionResult, Holding, ParsingMode, Transaction

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 500
SUPPORTED_CURRENCIES = frozenset({"USD", "INR", "EUR", "GBP", "JPY", "AUD", "CAD", "SGD", "AED"})

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _is_number(value: Any) -> bool:
    """Finite int/float; booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _optional_number(value: Any) -> float | None:
    return float(value) if _is_number(value) else None


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def is_valid_transaction(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    date = item.get("date")
    if not isinstance(date, str) or not _DATE_PATTERN.match(date.strip()):
        return False
    amount = item.get("amount")
    if not _is_number(amount) or amount <= 0:
        return False
    return item.get("type") in ("credit", "debit") and isinstance(item.get("description"), str)


def normalize_transaction(item: dict[str, Any]) -> Transaction:
    return Transaction(
        date=item["date"].strip(),
        amount=abs(float(item["amount"])),
        type=item["type"],
        description=item["description"].strip()[:MAX_TEXT_LENGTH],
        balance=_optional_number(item.get("balance")),
    )


def is_valid_holding(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    for field in ("investment_type", "name"):
        value = item.get(field)
        if not isinstance(value, str) or not value.strip():
            return False
    if not _is_number(item.get("current_value")):
        return False
    units = item.get("units")
    # balance-based holdings (deposits, provident funds) carry no units
    return units is None or _is_number(units)


def normalize_holding(item: dict[str, Any]) -> Holding:
    currency = _optional_text(item.get("currency"))
    if currency is not None:
        currency = currency.upper()
        if currency not in SUPPORTED_CURRENCIES:
            currency = None

    return Holding(
        investment_type=item["investment_type"].strip().lower(),
        name=item["name"].strip()[:MAX_TEXT_LENGTH],
        current_value=float(item["current_value"]),
        units=_optional_number(item.get("units")),
        symbol=_optional_text(item.get("symbol")),
        isin=_optional_text(item.get("isin")),
        average_cost=_optional_number(item.get("average_cost")),
        current_price=_optional_number(item.get("current_price")),
        invested_value=_optional_number(item.get("invested_value")),
        folio_number=_optional_text(item.get("folio_number")),
        maturity_date=_optional_text(item.get("maturity_date")),
        interest_rate=_optional_number(item.get("interest_rate")),
        currency=currency,
    )


def shape_output(
    raw: Any,
    mode: ParsingMode,
    max_records: int,
    execution_time_ms: int = 0,
) -> ExecutionResult:
    """Validate and normalize raw parser output for ``mode``."""
    if not isinstance(raw, list):
        return ExecutionResult.failure(
            f"Parser returned {type(raw).__name__}, expected a list",
            kind="invalid_output",
            execution_time_ms=execution_time_ms,
        )

    if mode == "holding":
        is_valid, normalize = is_valid_holding, normalize_holding
    else:
        is_valid, normalize = is_valid_transaction, normalize_transaction

    records: list = []
    skipped = 0
    for item in raw:
        if len(records) >= max_records:
            logger.warning("Reached max record limit (%d)", max_records)
            break
        if is_valid(item):
            records.append(normalize(item))
        else:
            skipped += 1
            if skipped <= 3:
                logger.debug("Invalid %s record: %.200s", mode, item)

    if skipped:
        logger.warning("Skipped %d invalid %s records", skipped, mode)

    logger.debug("Extracted %d %s records in %dms", len(records), mode, execution_time_ms)
    return ExecutionResult(
        success=True,
        data=records,
        execution_time_ms=execution_time_ms,
        skipped_records=skipped,
    )
