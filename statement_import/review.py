"""Review and merge of categorized import candidates.

:class:`ImportReview` holds the ordered candidates a user is looking at. The
user may change an item's category (only to a label of the item's own
direction), flip its direction, or fix its description or amount. Confirming assigns a
fresh id and the user's id to every item and appends them to the store in one
call; cancelling discards everything. Either way the review is then closed.
"""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Callable, Iterable, Sequence

from .categorization import infer_category
from .logging_setup import get_logger
from .models import (
    DIRECTIONS,
    PAYMENT_METHODS,
    PLACEHOLDER_DESCRIPTION,
    CategorizedTransaction,
    Direction,
    PaymentMethod,
    TransactionRecord,
)
from .parsing import normalize_amount, to_cents
from .persistence import TransactionStore
from .vocabulary import CategoryVocabulary

_logger = get_logger("statement_import.review")


def _new_id() -> str:
    return str(uuid.uuid4())


class ImportReview:
    """Mutable review state over immutable candidates."""

    def __init__(
        self, candidates: Iterable[CategorizedTransaction], vocabulary: CategoryVocabulary
    ) -> None:
        self._items: list[CategorizedTransaction] = list(candidates)
        self._vocabulary = vocabulary
        self._closed = False
        for pos, item in enumerate(self._items):
            if not vocabulary.is_valid(item.category, item.direction):
                raise ValueError(
                    f"Candidate {pos} has category {item.category!r} "
                    f"outside the {item.direction} vocabulary"
                )

    # ---- Inspection ----------------------------------------------------------

    @property
    def items(self) -> tuple[CategorizedTransaction, ...]:
        return tuple(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    def choices_for(self, index: int) -> tuple[str, ...]:
        """Labels the user may pick for item ``index`` (its direction only)."""

        return self._vocabulary.labels(self._items[index].direction)

    # ---- Edits ---------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("review is closed")

    def override_category(self, index: int, category: str) -> CategorizedTransaction:
        self._ensure_open()
        current = self._items[index]
        if category not in self.choices_for(index):
            raise ValueError(
                f"Category {category!r} is not available for {current.direction} transactions"
            )
        updated = dataclasses.replace(current, category=category, source="user")
        self._items[index] = updated
        return updated

    def set_direction(self, index: int, direction: Direction) -> CategorizedTransaction:
        """Change an item's direction and re-infer its category by keywords."""

        self._ensure_open()
        if direction not in DIRECTIONS:
            raise ValueError(f"invalid direction: {direction!r}")
        current = self._items[index]
        if current.direction == direction:
            return current
        tx = dataclasses.replace(current.transaction, direction=direction)
        updated = infer_category(tx, self._vocabulary)
        self._items[index] = updated
        return updated

    def set_description(self, index: int, description: str) -> CategorizedTransaction:
        self._ensure_open()
        current = self._items[index]
        tx = dataclasses.replace(
            current.transaction, description=description.strip() or PLACEHOLDER_DESCRIPTION
        )
        updated = dataclasses.replace(current, transaction=tx)
        self._items[index] = updated
        return updated

    def set_amount(self, index: int, text: str) -> CategorizedTransaction:
        """Replace an item's amount with ``text`` parsed as a statement amount.

        The sign is dropped; direction stays as it is. Raises ``ValueError``
        when ``text`` is not an amount.
        """

        self._ensure_open()
        current = self._items[index]
        tx = dataclasses.replace(current.transaction, amount=to_cents(normalize_amount(text)))
        updated = dataclasses.replace(current, transaction=tx)
        self._items[index] = updated
        return updated

    # ---- Terminal actions ----------------------------------------------------

    def confirm(
        self,
        user_id: str,
        store: TransactionStore,
        *,
        payment_method: PaymentMethod = "pix",
        id_factory: Callable[[], str] = _new_id,
    ) -> list[TransactionRecord]:
        """Append every candidate to ``store`` as a new record; close the review."""

        self._ensure_open()
        if not user_id or not user_id.strip():
            raise ValueError("user_id is required to confirm an import")
        if payment_method not in PAYMENT_METHODS:
            raise ValueError(f"invalid payment method: {payment_method!r}")

        records = [
            TransactionRecord(
                id=id_factory(),
                user_id=user_id,
                type=item.direction,
                amount=item.transaction.amount,
                description=item.transaction.description,
                category=item.category,
                date=item.transaction.date,
                payment_method=payment_method,
            )
            for item in self._items
        ]
        if len({r.id for r in records}) != len(records):
            raise RuntimeError("id_factory produced duplicate identifiers")

        # Single append; the review stays open if the store rejects the batch.
        store.append_many(records)
        self._closed = True
        _logger.info("review:confirmed user_id=%s count=%d", user_id, len(records))
        return records

    def cancel(self) -> None:
        discarded = len(self._items)
        self._items = []
        self._closed = True
        _logger.info("review:cancelled discarded=%d", discarded)


# ---- Interactive walk-through ------------------------------------------------

type CategorySelector = Callable[[Sequence[str], str, CategorizedTransaction], str]
"""``selector(choices, default, item) -> chosen label``."""


def review_interactively(review: ImportReview, *, selector: CategorySelector) -> ImportReview:
    """Offer each item's direction-appropriate choices and apply any changes."""

    for index, item in enumerate(review.items):
        choices = review.choices_for(index)
        chosen = selector(choices, item.category, item)
        if chosen != item.category:
            review.override_category(index, chosen)
    return review


__all__ = ["ImportReview", "CategorySelector", "review_interactively"]
