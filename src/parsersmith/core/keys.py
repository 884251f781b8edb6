# src/parsersmith/core/keys.py — v1
"""Cache key normalization.

A cache key groups parser-code versions by issuer and document type,
e.g. ``"HDFC Bank" + "pdf" -> "hdfc_bank:pdf"``.
"""

from __future__ import annotations

import re

from parsersmith.core.models import ParsingMode

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Key-value namespaces reserved per parsing mode.
NAMESPACES: dict[ParsingMode, str] = {
    "transaction": "parser_code",
    "holding": "inv_parser_code",
}

# Source identifiers too generic to share a parser between documents.
UNCACHEABLE_SOURCES = frozenset({"other"})


def normalize_identifier(identifier: str) -> str:
    """Lower-case, collapse non-alphanumeric runs to '_' and trim them."""
    normalized = _NON_ALNUM.sub("_", identifier.lower()).strip("_")
    return normalized or "_"


def normalize_key(source_identifier: str, document_type: str) -> str:
    """Build the canonical cache key ``{normalized_source}:{document_type}``.

    Pure and total: empty input normalizes to ``"_"``.
    """
    return f"{normalize_identifier(source_identifier)}:{document_type.strip().lower()}"


def bank_source(institution_id: str, account_type: str) -> str:
    """Compose a transaction-domain source identifier from institution and account type.

    ``("HDFC", "savings account") -> "hdfc_savings_account"``
    """
    return f"{normalize_identifier(institution_id)}_{normalize_identifier(account_type)}"


def namespace_for(mode: ParsingMode) -> str:
    """Return the key-value namespace used for a parsing mode."""
    try:
        return NAMESPACES[mode]
    except KeyError:
        raise ValueError(f"Unknown parsing mode: {mode!r}") from None


def is_cacheable(source_identifier: str) -> bool:
    """Whether parsers generated for this source may be cached."""
    return normalize_identifier(source_identifier) not in UNCACHEABLE_SOURCES
