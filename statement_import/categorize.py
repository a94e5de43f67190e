"""Batch categorization: keyword rules, or the oracle with a keyword fallback.

Public API:
    - :func:`categorize_transactions`
    - :class:`CategorizationOutcome`

The oracle is used *instead of* keyword rules when the caller supplies one.
It gets exactly one attempt per batch. If that attempt fails in any way (an
exception, a malformed body, a result count that does not match the request)
every item is categorized by keyword rules instead; a partially trusted
oracle response is never used. Individual categories that are unknown or
belong to the wrong direction are replaced by the direction default without
discarding the rest of the batch.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass

from .categorization import (
    categorize_with_keywords,
    parse_oracle_response,
    resolve_oracle_categories,
)
from .logging_setup import get_logger
from .models import (
    CategorizedTransaction,
    ClassificationItem,
    ClassificationRequest,
    ParsedTransaction,
)
from .oracle import ClassificationOracle
from .vocabulary import CategoryVocabulary

_logger = get_logger("statement_import.categorize")

ORACLE_FALLBACK_NOTICE = (
    "Automatic categorization is unavailable right now; categories were "
    "suggested from keywords instead."
)


@dataclass(frozen=True, slots=True)
class CategorizationOutcome:
    """Result of categorizing one batch.

    Attributes
    ----------
    items:
        One categorized transaction per input, in input order.
    used_oracle:
        ``True`` when the oracle's answer was accepted for the batch.
    notice:
        Informational, non-blocking message for the user (set when the oracle
        was requested but the keyword fallback was used).
    substituted:
        Positions whose oracle category was rejected and replaced by the
        direction default.
    """

    items: list[CategorizedTransaction]
    used_oracle: bool = False
    notice: str | None = None
    substituted: tuple[int, ...] = ()


def build_request(transactions: Iterable[ParsedTransaction]) -> ClassificationRequest:
    return ClassificationRequest(
        transactions=[ClassificationItem.from_parsed(tx) for tx in transactions]
    )


def categorize_transactions(
    transactions: Iterable[ParsedTransaction],
    vocabulary: CategoryVocabulary,
    *,
    oracle: ClassificationOracle | None = None,
) -> CategorizationOutcome:
    """Categorize ``transactions`` against ``vocabulary``.

    Parameters
    ----------
    transactions:
        :class:`~statement_import.models.ParsedTransaction` items.
    vocabulary:
        Closed category vocabulary shared by both paths.
    oracle:
        Optional classification oracle. When ``None``, keyword rules are used.

    Returns
    -------
    CategorizationOutcome
        Never leaves an item uncategorized.
    """

    original_seq = list(transactions)
    if oracle is None or not original_seq:
        return CategorizationOutcome(items=categorize_with_keywords(original_seq, vocabulary))

    request = build_request(original_seq)
    t0 = time.perf_counter()
    try:
        body = oracle(request, vocabulary)
        categories = parse_oracle_response(body, request=request)
    except Exception as e:  # noqa: BLE001 - any oracle failure means keyword fallback
        dt_ms = (time.perf_counter() - t0) * 1000.0
        _logger.warning(
            "categorize:oracle_fallback num_transactions=%d latency_ms=%.2f error=%s",
            len(original_seq),
            dt_ms,
            e.__class__.__name__,
        )
        _logger.debug("categorize:oracle_fallback_detail error=%r", e)
        return CategorizationOutcome(
            items=categorize_with_keywords(original_seq, vocabulary),
            used_oracle=False,
            notice=ORACLE_FALLBACK_NOTICE,
        )

    items, substituted = resolve_oracle_categories(original_seq, categories, vocabulary)
    for pos in substituted:
        _logger.info(
            "categorize:oracle_category_rejected position=%d category=%r direction=%s",
            pos,
            categories[pos],
            original_seq[pos].direction,
        )
    _logger.info(
        "categorize:oracle_done num_transactions=%d substituted=%d",
        len(items),
        len(substituted),
    )
    return CategorizationOutcome(items=items, used_oracle=True, substituted=tuple(substituted))


__all__ = ["CategorizationOutcome", "ORACLE_FALLBACK_NOTICE", "categorize_transactions"]
