from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import pytest

import statement_import.oracle as oracle_mod
from statement_import.categorize import ORACLE_FALLBACK_NOTICE, categorize_transactions
from statement_import.models import ClassificationRequest, ParsedTransaction
from statement_import.oracle import OpenAIClassificationOracle, OracleError
from statement_import.prompting import BEGIN_MARKER, END_MARKER, ITEM_FIELD_ORDER
from statement_import.vocabulary import DEFAULT_VOCABULARY, CategoryVocabulary
from tests.helpers.oracle_stub import extract_batch_from_user_content, make_openai_factory


def _tx(description: str, direction: str = "expense", amount: str = "10") -> ParsedTransaction:
    return ParsedTransaction(
        date=date(2025, 3, 1),
        amount=Decimal(amount),
        description=description,
        direction=direction,  # type: ignore[arg-type]
    )


TXS = [
    _tx("BaitaSuper"),
    _tx("Transferência Recebida - Amanda", "income", "40"),
    _tx("Uber *trip"),
]


def _echo(categories: list[str]):
    """Fake oracle answering ``categories`` in order, mirroring the request."""

    calls: list[ClassificationRequest] = []

    def oracle(request: ClassificationRequest, vocabulary: CategoryVocabulary) -> dict[str, Any]:
        calls.append(request)
        return {
            "categorizedTransactions": [
                {**item.model_dump(), "category": cat}
                for item, cat in zip(request.transactions, categories, strict=True)
            ]
        }

    oracle.calls = calls  # type: ignore[attr-defined]
    return oracle


# ---- Pipeline with fake oracles ----------------------------------------------


def test_without_oracle_uses_keywords():
    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY)

    assert [i.category for i in outcome.items] == ["Food", "Other Income", "Transportation"]
    assert outcome.used_oracle is False
    assert outcome.notice is None


def test_valid_oracle_answer_is_used():
    oracle = _echo(["Leisure", "Freelance", "Transportation"])
    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=oracle)

    assert outcome.used_oracle is True
    assert [i.category for i in outcome.items] == ["Leisure", "Freelance", "Transportation"]
    assert {i.source for i in outcome.items} == {"oracle"}
    # Exactly one call with the whole batch.
    assert len(oracle.calls) == 1
    assert [t.description for t in oracle.calls[0].transactions] == [t.description for t in TXS]


def test_oracle_exception_falls_back_to_keywords_for_every_item():
    def failing(request, vocabulary):
        raise TimeoutError("upstream timed out")

    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=failing)

    assert outcome.used_oracle is False
    assert outcome.notice == ORACLE_FALLBACK_NOTICE
    assert outcome.items == categorize_transactions(TXS, DEFAULT_VOCABULARY).items


@pytest.mark.parametrize(
    "categories",
    [
        ["Leisure", "Freelance"],  # shorter
        ["Leisure", "Freelance", "Food", "Food"],  # longer
        [],  # empty
    ],
)
def test_length_mismatch_is_total_failure(categories: list[str]):
    def oracle(request, vocabulary):
        return {
            "categorizedTransactions": [
                {"description": "x", "amount": 1.0, "type": "expense", "category": cat}
                for cat in categories
            ]
        }

    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=oracle)

    assert outcome.used_oracle is False
    assert outcome.notice == ORACLE_FALLBACK_NOTICE
    assert [i.category for i in outcome.items] == ["Food", "Other Income", "Transportation"]


@pytest.mark.parametrize(
    "body",
    [
        None,
        [],
        {"unexpected": []},
        {"categorizedTransactions": "nope"},
        {"categorizedTransactions": [{"description": "x", "amount": 1, "type": "expense"}] * 3},
    ],
)
def test_malformed_oracle_body_is_total_failure(body):
    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=lambda r, v: body)

    assert outcome.used_oracle is False
    assert outcome.notice == ORACLE_FALLBACK_NOTICE


def test_reordered_echo_is_total_failure():
    expenses = [_tx("Uber *trip"), _tx("Netflix.com", amount="39.90")]

    def reordered(request, vocabulary):
        items = [i.model_dump() for i in request.transactions]
        return {
            "categorizedTransactions": [
                {**items[1], "category": "Leisure"},
                {**items[0], "category": "Transportation"},
            ]
        }

    outcome = categorize_transactions(expenses, DEFAULT_VOCABULARY, oracle=reordered)

    assert outcome.used_oracle is False
    assert outcome.notice == ORACLE_FALLBACK_NOTICE
    assert [i.category for i in outcome.items] == ["Transportation", "Leisure"]


@pytest.mark.parametrize(
    "changes",
    [{"type": "income"}, {"description": "something else"}, {"amount": 99.0}],
)
def test_echo_must_match_request_item(changes: dict[str, Any]):
    def altered(request, vocabulary):
        items = [{**i.model_dump(), "category": "Food"} for i in request.transactions]
        items[0].update(changes)
        return {"categorizedTransactions": items}

    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=altered)

    assert outcome.used_oracle is False
    assert outcome.notice == ORACLE_FALLBACK_NOTICE


def test_unknown_or_wrong_direction_category_is_substituted_per_item():
    # "Salary" is an income label returned for an expense; "Groceries" is unknown.
    oracle = _echo(["Salary", "Investments", "Groceries"])
    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=oracle)

    assert outcome.used_oracle is True
    assert [i.category for i in outcome.items] == ["Purchases", "Investments", "Purchases"]
    assert [i.source for i in outcome.items] == ["default", "oracle", "default"]
    assert outcome.substituted == (0, 2)


def test_empty_batch_never_calls_oracle():
    oracle = _echo([])
    outcome = categorize_transactions([], DEFAULT_VOCABULARY, oracle=oracle)

    assert outcome.items == []
    assert oracle.calls == []


# ---- OpenAI adapter ----------------------------------------------------------


def _decide_by_type(item: dict[str, Any]) -> str:
    return "Freelance" if item["type"] == "income" else "Leisure"


def test_openai_oracle_single_call_with_vocabulary_and_schema(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(oracle_mod, "OpenAI", make_openai_factory(_decide_by_type, calls))

    outcome = categorize_transactions(
        TXS, DEFAULT_VOCABULARY, oracle=OpenAIClassificationOracle(model="gpt-test")
    )

    assert outcome.used_oracle is True
    # Stub answers in reverse order; results are realigned by idx.
    assert [i.category for i in outcome.items] == ["Leisure", "Freelance", "Leisure"]

    assert len(calls) == 1
    call = calls[0]
    assert call["model"] == "gpt-test"
    user_content = call["input"]
    assert BEGIN_MARKER in user_content and END_MARKER in user_content
    for label in DEFAULT_VOCABULARY.labels("expense"):
        assert label in user_content
    batch = extract_batch_from_user_content(user_content)
    assert [tuple(item) for item in batch] == [ITEM_FIELD_ORDER] * len(TXS)
    assert [item["type"] for item in batch] == ["expense", "income", "expense"]

    fmt = call["text"]["format"]
    assert fmt["type"] == "json_schema" and fmt["strict"] is True
    enum = fmt["schema"]["properties"]["results"]["items"]["properties"]["category"]["enum"]
    assert set(enum) == {spec.label for spec in DEFAULT_VOCABULARY}


def test_openai_oracle_uses_model_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("STATEMENT_IMPORT_MODEL", "gpt-env")
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(oracle_mod, "OpenAI", make_openai_factory(_decide_by_type, calls))

    categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=OpenAIClassificationOracle())

    assert calls[0]["model"] == "gpt-env"


def test_openai_oracle_without_api_key_falls_back(monkeypatch: pytest.MonkeyPatch):
    def _must_not_construct(*a, **kw):
        raise AssertionError("client must not be created without an API key")

    monkeypatch.setattr(oracle_mod, "OpenAI", _must_not_construct)

    oracle = OpenAIClassificationOracle()
    with pytest.raises(OracleError):
        oracle._create_client()

    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=oracle)
    assert outcome.used_oracle is False
    assert outcome.notice == ORACLE_FALLBACK_NOTICE


def test_openai_oracle_invalid_json_falls_back(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    class _Resp:
        output_text = "not json"

    class _Client:
        def __init__(self, *a, **kw):
            class _Responses:
                def create(self, **kwargs):
                    return _Resp()

            self.responses = _Responses()

    monkeypatch.setattr(oracle_mod, "OpenAI", _Client)

    outcome = categorize_transactions(TXS, DEFAULT_VOCABULARY, oracle=OpenAIClassificationOracle())

    assert outcome.used_oracle is False
    assert [i.category for i in outcome.items] == ["Food", "Other Income", "Transportation"]


def test_align_results_by_idx_rejects_duplicates_and_gaps():
    with pytest.raises(ValueError):
        oracle_mod.align_results_by_idx(
            {"results": [{"idx": 0, "category": "A"}, {"idx": 0, "category": "B"}]}, num_items=2
        )
    with pytest.raises(ValueError):
        oracle_mod.align_results_by_idx({"results": [{"idx": 3, "category": "A"}]}, num_items=1)
    assert oracle_mod.align_results_by_idx(
        {"results": [{"idx": 1, "category": " B "}, {"idx": 0, "category": "A"}]}, num_items=2
    ) == ["A", "B"]
