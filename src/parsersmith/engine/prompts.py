# src/parsersmith/engine/prompts.py — v1
"""Prompt templates for parser-code generation."""

from __future__ import annotations

from parsersmith.core.models import ExpectedSummary, FileType, ParsingMode

_CODE_RULES = """\
CODE CONTRACT:
1. Write a Python function BODY only (no `def` line). It receives the full
   document text in a variable named `text` and MUST end with an explicit
   `return` of a list of dicts.
2. Available without import: re, math, json, datetime, and the builtins
   len, range, enumerate, zip, min, max, sum, abs, round, int, float, str,
   bool, list, dict, set, tuple, sorted, reversed, isinstance, any, all, map,
   filter, next, iter and the common exception classes. Use the modules only
   through their public functions, classes and constants (re.compile,
   re.search, math.floor, json.loads, datetime.datetime, ...); never assign a
   module to a variable or reach into its submodules.
3. NO import statements, no open/eval/exec/getattr/print, no names starting
   with an underscore, no classes, no global/nonlocal. Do not use `type` as a
   variable name; use `txn_type` instead.
4. Use regular expressions and string methods for deterministic parsing.
5. Return an empty list if nothing is found."""

TRANSACTION_SYSTEM_PROMPT = f"""\
You are a bank statement parsing expert. Generate Python code that extracts
transactions from bank or credit-card statement text.

{_CODE_RULES}

Each transaction dict must have:
- date: "YYYY-MM-DD" string
- amount: positive number
- type: "credit" or "debit"
- description: string
- balance: running balance AFTER this transaction (number) or None

Skip headers, summary rows, totals and opening/closing balance lines. Handle
multi-line descriptions when present.

CREDIT VS DEBIT DETECTION (most important):
1. Explicit CR/DR markers win: "CR" = credit (money in), "DR" = debit (money out).
2. Separate Withdrawal/Deposit (Debit/Credit) columns: use the column.
3. Otherwise use the running balance. Determine whether rows are oldest-first
   or newest-first from the dates. Oldest-first: balance went up → credit,
   down → debit. Newest-first: the comparison flips. Seed the first row from
   an "Opening Balance" line when there is one.
Never infer the type from keywords such as UPI, transfer or payment.
Check your logic with: opening balance + credits - debits = closing balance."""

HOLDING_SYSTEM_PROMPT = f"""\
You are an investment statement parsing expert. Generate Python code that
extracts holdings from investment or portfolio statement text.

{_CODE_RULES}

Each holding dict must have:
- investment_type: stock | mutual_fund | etf | bond | ppf | epf | nps | fd | gold | reit | other
- name: full instrument name
- current_value: total current market value (number)
- units: quantity held, or None for balance-based holdings (PPF, EPF, FD, NPS
  balances). Never use 1 as a placeholder.
- symbol, isin, folio_number: string or None
- average_cost, current_price, invested_value, interest_rate: number or None
- maturity_date: "YYYY-MM-DD" or None
- currency: ISO code (USD, INR, EUR, GBP, ...) when the statement shows one,
  else None

current_value = units * current_price and invested_value = units * average_cost
when both factors are shown; otherwise use the printed totals. Skip headers,
summary rows and totals."""

SPREADSHEET_NOTE = """\
INPUT FORMAT: the text is CSV (comma-separated, converted from {file_type}),
NOT raw PDF text. Split rows on newlines, locate the header row in the first
few lines, map column names to indices, then parse each data row. Handle
quoted values that contain commas and strip thousands separators before
converting numbers."""

INSTITUTION_HINTS: dict[str, str] = {
    "hdfc": """\
HDFC BANK FORMAT:
- Rows are usually oldest-first and carry no CR/DR markers.
- Columns: Date | Narration | Chq./Ref.No. | Value Dt | Withdrawal Amt | Deposit Amt | Closing Balance.
  When both Withdrawal and Deposit columns are present, use them directly.
- Otherwise compare the Closing Balance with the previous row.
- Skip "Opening Balance", "Balance B/F", "Closing Balance", "STATEMENT SUMMARY" and total lines.
- Dates: DD/MM/YY, DD/MM/YYYY or DD-MMM-YY.""",
    "amex": """\
AMERICAN EXPRESS FORMAT:
- Dates look like "November 22"; take the year from "Statement Period From ... to ..., YEAR".
- The CR marker is on the line AFTER the transaction, e.g.
  "November 22 PAYMENT RECEIVED. THANK YOU 197,606.00" then "Card Number XXXX-XXXXXX-01009 CR".
  Look at the next one or two lines to decide credit vs debit.
- The amount is the last decimal number on the line; for overseas spend the
  first number is the foreign-currency amount.
- Skip "New domestic transactions for ...", "New overseas transactions for ...",
  "TOTAL OVERSEAS SPEND ..." and balance / credit-limit lines.""",
}

_RESPONSE_NOTE = """\
Respond with `code` (the function body), `detected_format` (a short name for
the statement layout) and `confidence` (0 to 1)."""

TRUNCATION_MARKER = "\n...[truncated]..."


def system_prompt(
    mode: ParsingMode,
    file_type: FileType = "pdf",
    institution: str | None = None,
    expected: ExpectedSummary | None = None,
) -> str:
    """Assemble the system prompt for one generation request."""
    sections = [HOLDING_SYSTEM_PROMPT if mode == "holding" else TRANSACTION_SYSTEM_PROMPT]

    if file_type in ("csv", "xlsx"):
        sections.append(SPREADSHEET_NOTE.format(file_type=file_type.upper()))
    elif institution:
        hint = _find_hint(institution)
        if hint:
            sections.append(hint)

    if expected is not None and expected.has_validation_data(mode):
        sections.append(_summary_section(mode, expected))

    sections.append(_RESPONSE_NOTE)
    return "\n\n".join(sections)


def excerpt(text: str, max_chars: int) -> str:
    """Document text cut to ``max_chars`` with a visible marker."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def user_prompt(text: str, mode: ParsingMode, max_chars: int) -> str:
    noun = "holdings" if mode == "holding" else "transactions"
    return (
        f"Generate parser code to extract all {noun} from this statement:\n\n"
        f"{excerpt(text, max_chars)}"
    )


def feedback_prompt(problem: str, issues: list[str] | None = None) -> str:
    """Next user turn after a failed attempt."""
    lines = [f"Your code did not work: {problem}"]
    if issues:
        lines.append("Details:")
        lines.extend(f"- {issue}" for issue in issues)
    lines.append("Fix the code and respond again with the full function body.")
    return "\n".join(lines)


def _find_hint(institution: str) -> str | None:
    name = institution.lower()
    for key, hint in INSTITUTION_HINTS.items():
        if key in name:
            return hint
    return None


def _summary_section(mode: ParsingMode, expected: ExpectedSummary) -> str:
    if mode == "holding":
        fields = [
            ("Holdings count", expected.holdings_count),
            ("Total invested", expected.total_invested),
            ("Total current value", expected.total_current),
        ]
        pitfalls = "summary/header rows counted as holdings, missed holdings, units vs value confusion, duplicates"
    else:
        fields = [
            ("Debit count", expected.debit_count),
            ("Credit count", expected.credit_count),
            ("Total debits", expected.total_debits),
            ("Total credits", expected.total_credits),
            ("Opening balance", expected.opening_balance),
            ("Closing balance", expected.closing_balance),
        ]
        pitfalls = "summary/total rows counted as transactions, missed rows, wrong credit/debit classification"

    values = "\n".join(f"- {label}: {value}" for label, value in fields if value is not None)
    return (
        "VALIDATION REQUIREMENT:\n"
        "The statement prints a summary that will be used to verify your output:\n"
        f"{values}\n"
        f"Common causes of a mismatch: {pitfalls}."
    )
