"""Deterministic keyword categorization and oracle output validation.

Both paths share the same :class:`~statement_import.vocabulary.CategoryVocabulary`
so a category can only ever come from the closed, direction-partitioned set.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .models import (
    CategorizedTransaction,
    ClassificationRequest,
    ClassificationResponse,
    Direction,
    ParsedTransaction,
)
from .vocabulary import CategoryVocabulary

# ---------------------------------------------------------------------------
# Keyword inference
# ---------------------------------------------------------------------------


def match_keyword_category(
    description: str, direction: Direction, vocabulary: CategoryVocabulary
) -> str | None:
    """Return the first category (in vocabulary order) with a keyword in ``description``.

    Matching is lower-cased substring containment. Only categories of
    ``direction`` are consulted, so the result always agrees with it.
    """

    text = description.lower()
    for label, keywords in vocabulary.keyword_table(direction):
        if any(k in text for k in keywords):
            return label
    return None


def infer_category(
    tx: ParsedTransaction, vocabulary: CategoryVocabulary
) -> CategorizedTransaction:
    """Categorize one transaction by keywords, else the direction default."""

    label = match_keyword_category(tx.description, tx.direction, vocabulary)
    if label is None:
        return CategorizedTransaction(
            transaction=tx, category=vocabulary.default_for(tx.direction), source="default"
        )
    return CategorizedTransaction(transaction=tx, category=label, source="keyword")


def categorize_with_keywords(
    transactions: Iterable[ParsedTransaction], vocabulary: CategoryVocabulary
) -> list[CategorizedTransaction]:
    return [infer_category(tx, vocabulary) for tx in transactions]


# ---------------------------------------------------------------------------
# Oracle response validation
# ---------------------------------------------------------------------------


def parse_oracle_response(
    body: ClassificationResponse | Mapping[str, Any],
    *,
    request: ClassificationRequest,
) -> list[str]:
    """Validate an oracle response against its request; return raw categories.

    The response must be a mapping with a ``categorizedTransactions`` list of
    exactly ``len(request.transactions)`` items, each echoing the request item
    at the same position (``type``, ``description`` and ``amount`` to the
    cent), so a reordered answer is rejected. Any structural problem raises
    ``ValueError`` (pydantic ``ValidationError`` is a subclass), which callers
    treat as a failure of the whole batch. Category membership is *not*
    checked here; see :func:`resolve_oracle_categories`.
    """

    if isinstance(body, ClassificationResponse):
        parsed = body
    else:
        if not isinstance(body, Mapping):
            raise ValueError("Invalid response: expected a JSON object at top level")
        parsed = ClassificationResponse.model_validate(body)

    expected = len(request.transactions)
    got = len(parsed.categorized_transactions)
    if got == 0 and expected > 0:
        raise ValueError("Invalid response: empty 'categorizedTransactions'")
    if got != expected:
        raise ValueError(f"Invalid response: expected {expected} results, got {got}")
    for pos, (sent, echoed) in enumerate(
        zip(request.transactions, parsed.categorized_transactions, strict=True)
    ):
        if (
            echoed.type != sent.type
            or echoed.description != sent.description
            or not math.isclose(echoed.amount, sent.amount, abs_tol=0.005)
        ):
            raise ValueError(f"Invalid response: item {pos} does not match the request item")
    return [item.category for item in parsed.categorized_transactions]


def resolve_oracle_categories(
    transactions: Sequence[ParsedTransaction],
    categories: Sequence[str],
    vocabulary: CategoryVocabulary,
) -> tuple[list[CategorizedTransaction], list[int]]:
    """Pair each transaction with its oracle category, substituting invalid ones.

    A category outside the vocabulary, or belonging to the other direction,
    is replaced by the direction default for that item only. Returns the
    categorized items plus the positions that were substituted.
    """

    if len(transactions) != len(categories):
        raise ValueError(
            f"Invalid response: expected {len(transactions)} results, got {len(categories)}"
        )

    out: list[CategorizedTransaction] = []
    substituted: list[int] = []
    for pos, (tx, cat) in enumerate(zip(transactions, categories, strict=True)):
        if vocabulary.is_valid(cat, tx.direction):
            out.append(CategorizedTransaction(transaction=tx, category=cat, source="oracle"))
        else:
            substituted.append(pos)
            out.append(
                CategorizedTransaction(
                    transaction=tx,
                    category=vocabulary.default_for(tx.direction),
                    source="default",
                )
            )
    return out, substituted


__all__ = [
    "match_keyword_category",
    "infer_category",
    "categorize_with_keywords",
    "parse_oracle_response",
    "resolve_oracle_categories",
]
