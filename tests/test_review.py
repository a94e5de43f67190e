from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

import pytest

from statement_import.categorization import categorize_with_keywords
from statement_import.models import (
    PLACEHOLDER_DESCRIPTION,
    CategorizedTransaction,
    ParsedTransaction,
    TransactionRecord,
)
from statement_import.persistence import InMemoryTransactionStore
from statement_import.review import ImportReview, review_interactively
from statement_import.vocabulary import DEFAULT_VOCABULARY


def _tx(description: str, direction: str = "expense", amount: str = "10") -> ParsedTransaction:
    return ParsedTransaction(
        date=date(2025, 5, 2),
        amount=Decimal(amount),
        description=description,
        direction=direction,  # type: ignore[arg-type]
    )


def _review() -> ImportReview:
    items = categorize_with_keywords(
        [_tx("Padaria Central", amount="12.50"), _tx("Pix recebido", "income", "300")],
        DEFAULT_VOCABULARY,
    )
    return ImportReview(items, DEFAULT_VOCABULARY)


class _FailingStore:
    def append_many(self, records: Sequence[TransactionRecord]) -> None:
        raise RuntimeError("disk full")

    def list_for_user(self, user_id: str) -> list[TransactionRecord]:
        return []


def test_choices_are_restricted_to_item_direction():
    review = _review()

    assert review.choices_for(0) == DEFAULT_VOCABULARY.labels("expense")
    assert review.choices_for(1) == DEFAULT_VOCABULARY.labels("income")


def test_override_rejects_other_direction_category():
    review = _review()

    with pytest.raises(ValueError):
        review.override_category(0, "Salary")
    with pytest.raises(ValueError):
        review.override_category(1, "Not A Category")

    updated = review.override_category(1, "Freelance")
    assert updated.category == "Freelance"
    assert updated.source == "user"


def test_set_direction_reinfers_category():
    review = _review()

    updated = review.set_direction(1, "expense")

    assert updated.direction == "expense"
    assert updated.category == DEFAULT_VOCABULARY.default_for("expense")
    assert review.choices_for(1) == DEFAULT_VOCABULARY.labels("expense")


def test_set_description_uses_placeholder_when_blank():
    review = _review()

    assert review.set_description(0, "  ").transaction.description == PLACEHOLDER_DESCRIPTION
    assert review.set_description(0, " Padaria Nova ").transaction.description == "Padaria Nova"


def test_set_amount_parses_statement_amounts():
    review = _review()

    assert review.set_amount(0, "1.234,56").transaction.amount == Decimal("1234.56")

    updated = review.set_amount(0, "-12,5")
    assert updated.transaction.amount == Decimal("12.50")
    assert updated.direction == "expense"
    assert updated.category == "Food"

    with pytest.raises(ValueError):
        review.set_amount(0, "abc")
    assert review.items[0].transaction.amount == Decimal("12.50")


def test_set_amount_refused_after_cancel():
    review = _review()
    review.cancel()

    with pytest.raises(RuntimeError):
        review.set_amount(0, "5")


def test_candidates_must_belong_to_vocabulary():
    bad = CategorizedTransaction(transaction=_tx("x"), category="Salary")
    with pytest.raises(ValueError):
        ImportReview([bad], DEFAULT_VOCABULARY)


def test_confirm_appends_all_items_once_with_fresh_ids():
    review = _review()
    store = InMemoryTransactionStore()

    records = review.confirm("user-1", store)

    assert len(store) == 2
    assert store.list_for_user("user-1") == records
    assert len({r.id for r in records}) == 2
    assert [r.type for r in records] == ["expense", "income"]
    assert [r.category for r in records] == ["Food", "Other Income"]
    assert {r.payment_method for r in records} == {"pix"}
    assert records[0].to_dict() == {
        "id": records[0].id,
        "userId": "user-1",
        "type": "expense",
        "amount": 12.5,
        "description": "Padaria Central",
        "category": "Food",
        "date": "2025-05-02",
        "paymentMethod": "pix",
    }
    assert review.closed
    with pytest.raises(RuntimeError):
        review.override_category(0, "Food")


def test_confirm_requires_user_and_valid_payment_method():
    review = _review()
    store = InMemoryTransactionStore()

    with pytest.raises(ValueError):
        review.confirm(" ", store)
    with pytest.raises(ValueError):
        review.confirm("user-1", store, payment_method="cheque")  # type: ignore[arg-type]
    assert len(store) == 0
    assert not review.closed


def test_store_failure_leaves_review_open():
    review = _review()

    with pytest.raises(RuntimeError, match="disk full"):
        review.confirm("user-1", _FailingStore())

    assert not review.closed
    assert len(review) == 2


def test_duplicate_ids_are_refused_before_writing():
    review = _review()
    store = InMemoryTransactionStore()

    with pytest.raises(RuntimeError):
        review.confirm("user-1", store, id_factory=lambda: "same")
    assert len(store) == 0


def test_cancel_discards_everything():
    review = _review()
    store = InMemoryTransactionStore()

    review.cancel()

    assert review.closed
    assert len(review) == 0
    assert len(store) == 0
    with pytest.raises(RuntimeError):
        review.confirm("user-1", store)


def test_review_interactively_applies_selector_choices():
    review = _review()
    seen: list[tuple[tuple[str, ...], str]] = []

    def selector(choices, default, item):
        seen.append((tuple(choices), default))
        return "Leisure" if item.direction == "expense" else default

    review_interactively(review, selector=selector)

    assert [i.category for i in review.items] == ["Leisure", "Other Income"]
    assert [i.source for i in review.items] == ["user", "default"]
    assert seen[0] == (DEFAULT_VOCABULARY.labels("expense"), "Food")
    assert seen[1] == (DEFAULT_VOCABULARY.labels("income"), "Other Income")
