"""Category vocabulary: the closed, ordered set of labels shared by every stage.

The vocabulary is an ordered tuple of :class:`CategorySpec` entries rather
than a mapping. Keyword inference walks it in order and stops at the first
hit, so the position of an entry is part of its meaning (e.g. ``Purchases``
must precede ``Food`` so that "mercado livre" is not read as a grocery
"mercado").

A vocabulary is built once (the built-in :data:`DEFAULT_VOCABULARY` or a JSON
file via :func:`load_vocabulary`) and passed explicitly to the components that
need it. It is never mutated.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from .models import DIRECTIONS, Direction

type BudgetBucket = Literal["needs", "wants", "savings"]

VOCABULARY_VERSION = 1

# ---------------------------
# Label normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(r"^[\w &\-/]+$")


def normalize_label(label: str) -> str:
    """Return a trimmed, single-spaced representation of ``label``."""

    return " ".join(label.strip().split())


def validate_label(label: str, *, max_len: int = 64) -> str | None:
    """Return a reason string when ``label`` is unusable, else ``None``.

    Letters (including accented ones), digits, spaces and ``& - /`` are
    allowed; length is 1..``max_len`` after normalization.
    """

    n = normalize_label(label)
    if not n:
        return "Label cannot be empty"
    if len(n) > max_len:
        return f"Label must be at most {max_len} characters"
    if not _ALLOWED_RE.match(n):
        return "Only letters, numbers, spaces, and & - / are allowed"
    return None


# ---------------------------
# Vocabulary types
# ---------------------------


@dataclass(frozen=True, slots=True)
class CategorySpec:
    label: str
    direction: Direction
    bucket: BudgetBucket | None = None
    keywords: tuple[str, ...] = ()
    is_default: bool = False


class CategoryVocabulary:
    """Immutable, ordered category vocabulary partitioned by direction."""

    __slots__ = ("_entries", "_by_label", "_defaults", "version")

    def __init__(self, entries: Iterable[CategorySpec], *, version: int = VOCABULARY_VERSION):
        items = tuple(entries)
        by_label: dict[str, CategorySpec] = {}
        defaults: dict[str, str] = {}
        for spec in items:
            reason = validate_label(spec.label)
            if reason:
                raise ValueError(f"Invalid category label {spec.label!r}: {reason}")
            if spec.direction not in DIRECTIONS:
                raise ValueError(f"Invalid direction for {spec.label!r}: {spec.direction!r}")
            if spec.label in by_label:
                raise ValueError(f"Duplicate category label: {spec.label!r}")
            if spec.is_default:
                if spec.direction in defaults:
                    raise ValueError(f"More than one default category for {spec.direction}")
                defaults[spec.direction] = spec.label
            by_label[spec.label] = spec
        missing = [d for d in DIRECTIONS if d not in defaults]
        if missing:
            raise ValueError(f"Vocabulary has no default category for: {', '.join(missing)}")

        self._entries = items
        self._by_label = by_label
        self._defaults = defaults
        self.version = version

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, label: object) -> bool:
        return label in self._by_label

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"CategoryVocabulary(version={self.version}, size={len(self._entries)})"

    def get(self, label: str) -> CategorySpec | None:
        return self._by_label.get(label)

    def labels(self, direction: Direction) -> tuple[str, ...]:
        """Labels for ``direction`` in priority order."""

        return tuple(s.label for s in self._entries if s.direction == direction)

    def default_for(self, direction: Direction) -> str:
        return self._defaults[direction]

    def is_valid(self, label: str, direction: Direction) -> bool:
        spec = self._by_label.get(label)
        return spec is not None and spec.direction == direction

    def keyword_table(self, direction: Direction) -> tuple[tuple[str, tuple[str, ...]], ...]:
        """Ordered ``(label, lower-cased keywords)`` pairs for ``direction``."""

        return tuple(
            (s.label, tuple(k.lower() for k in s.keywords))
            for s in self._entries
            if s.direction == direction and s.keywords
        )


# ---------------------------
# Built-in vocabulary
# ---------------------------

DEFAULT_VOCABULARY = CategoryVocabulary(
    [
        # Income
        CategorySpec(
            "Salary",
            "income",
            keywords=("salário", "salario", "holerite", "folha de pagamento", "payroll"),
        ),
        CategorySpec(
            "Freelance",
            "income",
            keywords=("freela", "freelance", "honorário", "honorario"),
        ),
        CategorySpec(
            "Investments",
            "income",
            keywords=(
                "rendimento",
                "dividendo",
                "resgate",
                "juros sobre capital",
                "tesouro direto",
            ),
        ),
        CategorySpec("Other Income", "income", is_default=True),
        # Expenses
        CategorySpec(
            "Purchases",
            "expense",
            bucket="wants",
            keywords=(
                "mercado livre",
                "mercadolivre",
                "amazon",
                "shopee",
                "magalu",
                "magazine luiza",
                "americanas",
                "aliexpress",
                "shein",
            ),
            is_default=True,
        ),
        CategorySpec(
            "Food",
            "expense",
            bucket="needs",
            keywords=(
                "super",
                "mercado",
                "mercearia",
                "padaria",
                "açougue",
                "acougue",
                "hortifruti",
                "restaurante",
                "lanchonete",
                "pizzaria",
                "ifood",
                "burger",
            ),
        ),
        CategorySpec(
            "Transportation",
            "expense",
            bucket="needs",
            keywords=(
                "uber",
                "99app",
                "99 pop",
                "auto posto",
                "posto shell",
                "posto ipiranga",
                "combustível",
                "combustivel",
                "gasolina",
                "estacionamento",
                "pedágio",
                "pedagio",
                "metrô",
                "ônibus",
                "onibus",
            ),
        ),
        CategorySpec(
            "Housing",
            "expense",
            bucket="needs",
            keywords=(
                "aluguel",
                "condomínio",
                "condominio",
                "iptu",
                "energia",
                "enel",
                "sabesp",
                "internet",
            ),
        ),
        CategorySpec(
            "Health",
            "expense",
            bucket="needs",
            keywords=(
                "farmácia",
                "farmacia",
                "drogaria",
                "droga raia",
                "hospital",
                "clínica",
                "clinica",
                "laboratório",
                "laboratorio",
                "dentista",
                "unimed",
            ),
        ),
        CategorySpec(
            "Education",
            "expense",
            bucket="needs",
            keywords=(
                "escola",
                "faculdade",
                "universidade",
                "cursinho",
                "curso online",
                "udemy",
                "alura",
                "livraria",
            ),
        ),
        CategorySpec(
            "Leisure",
            "expense",
            bucket="wants",
            keywords=(
                "netflix",
                "spotify",
                "disney",
                "cinema",
                "ingresso",
                "steam",
                "boteco",
                "airbnb",
                "hotel",
            ),
        ),
        CategorySpec(
            "Debts",
            "expense",
            bucket="savings",
            keywords=("empréstimo", "emprestimo", "financiamento", "pagamento de fatura"),
        ),
        CategorySpec(
            "Savings",
            "expense",
            bucket="savings",
            keywords=("aplicação", "aplicacao", "poupança", "poupanca", "corretora"),
        ),
    ]
)


# ---------------------------
# JSON loading
# ---------------------------


class _CategoryEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    label: str
    direction: Direction
    bucket: BudgetBucket | None = None
    keywords: list[str] = []
    default: bool = False

    @field_validator("label")
    @classmethod
    def _label_ok(cls, v: str) -> str:
        reason = validate_label(v)
        if reason:
            raise ValueError(reason)
        return normalize_label(v)

    @field_validator("keywords")
    @classmethod
    def _clean_keywords(cls, v: list[str]) -> list[str]:
        return [k.strip() for k in v if isinstance(k, str) and k.strip()]


class _VocabularyFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int
    categories: list[_CategoryEntry]


def vocabulary_from_mapping(data: object) -> CategoryVocabulary:
    """Build a vocabulary from already-decoded JSON data.

    Entries keep their file order, which becomes the keyword priority order.
    Raises ``ValueError`` (pydantic ``ValidationError`` included) on bad input.
    """

    parsed = _VocabularyFile.model_validate(data)
    return CategoryVocabulary(
        (
            CategorySpec(
                label=e.label,
                direction=e.direction,
                bucket=e.bucket,
                keywords=tuple(e.keywords),
                is_default=e.default,
            )
            for e in parsed.categories
        ),
        version=parsed.version,
    )


def load_vocabulary(path: str | PathLike[str] | None = None) -> CategoryVocabulary:
    """Return the vocabulary stored at ``path``, or the built-in one when ``None``."""

    if path is None:
        return DEFAULT_VOCABULARY
    p = Path(path)
    with p.open(encoding="utf-8") as f:
        data = json.load(f)
    return vocabulary_from_mapping(data)


def vocabulary_to_mapping(vocabulary: CategoryVocabulary) -> dict[str, object]:
    """Inverse of :func:`vocabulary_from_mapping`, e.g. for exporting the defaults."""

    return {
        "version": vocabulary.version,
        "categories": [
            {
                "label": s.label,
                "direction": s.direction,
                "bucket": s.bucket,
                "keywords": list(s.keywords),
                "default": s.is_default,
            }
            for s in vocabulary
        ],
    }


def split_by_direction(vocabulary: CategoryVocabulary) -> dict[str, Sequence[str]]:
    """``{"income": [...], "expense": [...]}`` as shared with the oracle."""

    return {d: list(vocabulary.labels(d)) for d in DIRECTIONS}


__all__ = [
    "BudgetBucket",
    "VOCABULARY_VERSION",
    "CategorySpec",
    "CategoryVocabulary",
    "DEFAULT_VOCABULARY",
    "normalize_label",
    "validate_label",
    "load_vocabulary",
    "vocabulary_from_mapping",
    "vocabulary_to_mapping",
    "split_by_direction",
]
