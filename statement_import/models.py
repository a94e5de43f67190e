"""Data models and type aliases for ``statement_import``.

Two families live here:

- Frozen dataclasses for values flowing through the pipeline
  (:class:`ParsedTransaction`, :class:`CategorizedTransaction`,
  :class:`TransactionRecord`). They are created once and replaced, never
  mutated.
- Pydantic models for the classification oracle boundary. Oracle output is
  untrusted, so its shape is validated before anything reads it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Core pipeline values
# ---------------------------------------------------------------------------

type Direction = Literal["income", "expense"]
"""Income or expense; the only place a transaction's sign is recorded."""

DIRECTIONS: tuple[Direction, ...] = ("income", "expense")

type CategorySource = Literal["keyword", "oracle", "default", "user"]

type PaymentMethod = Literal["cash", "pix", "credit_card"]

PAYMENT_METHODS: tuple[PaymentMethod, ...] = ("cash", "pix", "credit_card")

PLACEHOLDER_DESCRIPTION = "Imported Transaction"


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A transaction extracted from one line of pasted statement text.

    Attributes
    ----------
    date:
        Calendar date of the transaction. Serialized as ISO-8601 at every
        boundary.
    amount:
        Absolute amount. Never negative; see ``direction``.
    description:
        Trimmed, non-empty description.
    direction:
        ``"income"`` when the signed amount on the line was >= 0, otherwise
        ``"expense"``.
    """

    date: date
    amount: Decimal
    description: str
    direction: Direction

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative, got {self.amount}")
        if not self.description.strip():
            raise ValueError("description must be non-empty")
        if self.direction not in DIRECTIONS:
            raise ValueError(f"invalid direction: {self.direction!r}")


@dataclass(frozen=True, slots=True)
class CategorizedTransaction:
    """A parsed transaction paired with a category from the vocabulary.

    ``source`` records which layer produced ``category``: keyword rules, the
    oracle, the direction default, or a user override during review.
    """

    transaction: ParsedTransaction
    category: str
    source: CategorySource = "keyword"

    @property
    def direction(self) -> Direction:
        return self.transaction.direction


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """A confirmed transaction as appended to the store."""

    id: str
    user_id: str
    type: Direction
    amount: Decimal
    description: str
    category: str
    date: date
    payment_method: PaymentMethod = "pix"

    def to_dict(self) -> dict[str, Any]:
        """Return the storage-facing mapping (camelCase keys, ISO date)."""

        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "amount": float(self.amount),
            "description": self.description,
            "category": self.category,
            "date": self.date.isoformat(),
            "paymentMethod": self.payment_method,
        }


# ---------------------------------------------------------------------------
# Classification oracle boundary
# ---------------------------------------------------------------------------


class ClassificationItem(BaseModel):
    """One transaction as sent to the oracle."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    description: str
    amount: float
    type: Direction

    @classmethod
    def from_parsed(cls, tx: ParsedTransaction) -> ClassificationItem:
        return cls(description=tx.description, amount=float(tx.amount), type=tx.direction)


class ClassificationRequest(BaseModel):
    """Ordered batch submitted to the oracle in a single call."""

    model_config = ConfigDict(extra="forbid")

    transactions: list[ClassificationItem]


class CategorizedItem(ClassificationItem):
    """An input item echoed back with the oracle's chosen category."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    category: str

    @field_validator("category")
    @classmethod
    def _category_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("category must be a non-empty string")
        return v.strip()


class ClassificationResponse(BaseModel):
    """Oracle output: must mirror the request's length and order."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    categorized_transactions: list[CategorizedItem] = Field(alias="categorizedTransactions")


__all__ = [
    "Direction",
    "DIRECTIONS",
    "CategorySource",
    "PaymentMethod",
    "PAYMENT_METHODS",
    "PLACEHOLDER_DESCRIPTION",
    "ParsedTransaction",
    "CategorizedTransaction",
    "TransactionRecord",
    "ClassificationItem",
    "ClassificationRequest",
    "CategorizedItem",
    "ClassificationResponse",
]
