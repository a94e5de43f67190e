"""Prompt construction and batch serialization for oracle categorization.

This module builds:
- A deterministic JSON serialization of the request batch, with a
  batch-relative ``idx`` per item for alignment.
- The system instructions and the user content (vocabulary split by
  direction plus the delimited batch JSON).
- The strict ``response_format`` (JSON Schema) object for the OpenAI
  Responses API, whose category enum is the closed vocabulary.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import ClassificationRequest

BEGIN_MARKER = "BEGIN_TRANSACTIONS_JSON"
END_MARKER = "END_TRANSACTIONS_JSON"

ITEM_FIELD_ORDER: tuple[str, ...] = ("idx", "description", "amount", "type")

_USER_TEMPLATE = """\
Available categories:
- For expenses: {expense_categories}
- For income: {income_categories}

Rules:
- Assign exactly one category to every transaction, using only the list that
  matches the transaction's type.
- When the description is unclear, use your best judgment. For generic store
  names use "{expense_default}". For income without a clear source use
  "{income_default}".
- Return one result per transaction, echoing its idx.

{begin}
{batch_json}
{end}
"""


def serialize_request_to_json(request: ClassificationRequest) -> str:
    """Serialize the batch to a JSON array with a fixed field order.

    Field order per object is exactly ``idx, description, amount, type``.
    """

    arr: list[dict[str, Any]] = []
    for idx, item in enumerate(request.transactions):
        values = {"idx": idx, **item.model_dump()}
        arr.append({key: values[key] for key in ITEM_FIELD_ORDER})
    return json.dumps(arr, ensure_ascii=False)


def build_system_instructions() -> str:
    return (
        "You are an expert financial assistant that categorizes personal bank "
        "transactions from their descriptions. Choose exactly one category per "
        "transaction from the list for its type. Never invent categories. Output JSON "
        "only that conforms to the specified schema."
    )


def build_user_content(
    batch_json: str,
    categories: Mapping[str, Sequence[str]],
    *,
    defaults: Mapping[str, str],
) -> str:
    """Embed the direction-split vocabulary and the delimited batch JSON."""

    return _USER_TEMPLATE.format(
        expense_categories=", ".join(categories.get("expense", ())),
        income_categories=", ".join(categories.get("income", ())),
        expense_default=defaults["expense"],
        income_default=defaults["income"],
        begin=BEGIN_MARKER,
        batch_json=batch_json,
        end=END_MARKER,
    )


def build_response_format(
    categories: Mapping[str, Sequence[str]],
) -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema response_format for the given vocabulary.

    Schema shape::

        {"results": [{"idx": int, "category": <enum of all labels>}, ...]}
    """

    labels: list[str] = [
        c
        for c in dict.fromkeys(
            str(label).strip() for d in ("income", "expense") for label in categories.get(d, ())
        )
        if c
    ]
    if not labels:
        raise ValueError("vocabulary must contain at least one non-blank label")

    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "transaction_categories",
        "schema": {
            "type": "object",
            "properties": {
                "results": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "idx": {"type": "integer"},
                            "category": {"type": "string", "enum": labels},
                        },
                        "required": ["idx", "category"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["results"],
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


__all__ = [
    "BEGIN_MARKER",
    "END_MARKER",
    "ITEM_FIELD_ORDER",
    "serialize_request_to_json",
    "build_system_instructions",
    "build_user_content",
    "build_response_format",
]
