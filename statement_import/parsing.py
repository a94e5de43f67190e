"""Pasted statement text → :class:`ParsedTransaction` rows.

Three small stages, each usable on its own:

1. :func:`tokenize_lines` splits the paste into non-blank lines.
2. :func:`extract_fields` matches one line against the single recognised
   layout ``<DD/MM[/YYYY]> <amount> <description>`` and returns the raw
   string fields.
3. :func:`normalize_fields` converts those strings into a date, an absolute
   ``Decimal`` amount and a direction.

:func:`parse_statement` composes them. Lines that fail any stage are dropped
(logged at DEBUG) and never abort the batch: statements routinely carry
headers, footers and instructions that must simply be skipped.

Everything here is pure: no I/O, no shared mutable state.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple

from .logging_setup import get_logger
from .models import PLACEHOLDER_DESCRIPTION, ParsedTransaction

_logger = get_logger("statement_import.parsing")

# <date> <amount> [<uuid>] <description>
_LINE_RE = re.compile(
    r"""
    ^\s*
    (?P<date>\d{2}/\d{2}(?:/\d{4})?)
    \s+
    (?P<amount>[-+]?\d[\d.]*(?:,\d+)?)
    (?:\s+[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}(?=\s|$))?
    (?:\s+(?P<description>.*?))?
    \s*$
    """,
    re.VERBOSE | re.IGNORECASE,
)

# 1.234.567 (no decimal comma): dots are thousands separators.
_DOT_GROUPED_RE = re.compile(r"^\d{1,3}(?:\.\d{3}){2,}$")

CENT = Decimal("0.01")


class RawFields(NamedTuple):
    """String fields captured from a matching line, not yet converted."""

    date_str: str
    amount_str: str
    description_str: str


# ---------------------------------------------------------------------------
# Stage 1: tokenizer
# ---------------------------------------------------------------------------


def tokenize_lines(text: str) -> list[str]:
    """Return the non-blank lines of ``text`` in order, unmodified."""

    if not text:
        return []
    return [line for line in text.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Stage 2: extractor
# ---------------------------------------------------------------------------


def extract_fields(line: str) -> RawFields | None:
    """Match ``line`` against the statement layout; ``None`` when it does not fit."""

    m = _LINE_RE.match(line)
    if m is None:
        return None
    return RawFields(
        date_str=m.group("date"),
        amount_str=m.group("amount"),
        description_str=(m.group("description") or "").strip(),
    )


# ---------------------------------------------------------------------------
# Stage 3: normalizer
# ---------------------------------------------------------------------------


def normalize_amount(raw: str) -> Decimal:
    """Parse a locale-formatted amount token into a signed ``Decimal``.

    - With a ``,`` present, ``.`` is a thousands separator and ``,`` the
      decimal separator (``1.234,56`` → ``1234.56``).
    - Without ``,``, two or more dot-separated groups of three digits are
      thousands (``1.234.567`` → ``1234567``); any other ``.`` is a decimal
      point (``-5.7`` → ``-5.7``).
    """

    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")

    negative = False
    if s[0] in "+-":
        negative = s[0] == "-"
        s = s[1:]

    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    elif _DOT_GROUPED_RE.match(s):
        s = s.replace(".", "")

    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return -d if negative else d


def to_cents(amount: Decimal) -> Decimal:
    """Absolute value rounded half-up to cents, the precision records are stored at."""

    return abs(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_date(raw: str, *, today: date | None = None) -> date:
    """Parse ``DD/MM`` or ``DD/MM/YYYY``; the year defaults to ``today``'s year."""

    parts = raw.strip().split("/")
    if len(parts) not in (2, 3):
        raise ValueError(f"invalid date: {raw!r}")
    try:
        day = int(parts[0])
        month = int(parts[1])
        year = int(parts[2]) if len(parts) == 3 else (today or date.today()).year
    except ValueError as exc:
        raise ValueError(f"invalid date: {raw!r}") from exc
    # date() rejects 32/13 and 29/02 in non-leap years.
    return date(year, month, day)


def normalize_fields(fields: RawFields, *, today: date | None = None) -> ParsedTransaction:
    """Convert extracted strings into a :class:`ParsedTransaction`.

    Raises ``ValueError`` when the date or amount cannot be interpreted.
    """

    tx_date = normalize_date(fields.date_str, today=today)
    signed = normalize_amount(fields.amount_str)
    description = fields.description_str.strip() or PLACEHOLDER_DESCRIPTION
    return ParsedTransaction(
        date=tx_date,
        amount=to_cents(signed),
        description=description,
        direction="income" if signed >= 0 else "expense",
    )


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def parse_lines(lines: Iterable[str], *, today: date | None = None) -> list[ParsedTransaction]:
    out: list[ParsedTransaction] = []
    for lineno, line in enumerate(lines, start=1):
        fields = extract_fields(line)
        if fields is None:
            _logger.debug("parse:skip_unmatched line=%d", lineno)
            continue
        try:
            out.append(normalize_fields(fields, today=today))
        except ValueError as e:
            _logger.debug("parse:skip_invalid line=%d error=%s", lineno, e)
    return out


def parse_statement(text: str, *, today: date | None = None) -> list[ParsedTransaction]:
    """Parse pasted statement text into transactions, in input order.

    Parameters
    ----------
    text:
        Arbitrary pasted text. Blank, unmatched and malformed lines are
        skipped.
    today:
        Reference date whose year fills in ``DD/MM`` dates. Defaults to the
        current date.
    """

    lines = tokenize_lines(text)
    parsed = parse_lines(lines, today=today)
    _logger.info("parse:done lines=%d transactions=%d", len(lines), len(parsed))
    return parsed


__all__ = [
    "RawFields",
    "tokenize_lines",
    "extract_fields",
    "normalize_amount",
    "to_cents",
    "normalize_date",
    "normalize_fields",
    "parse_lines",
    "parse_statement",
]
