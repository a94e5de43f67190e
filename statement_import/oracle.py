"""Classification oracle boundary and its OpenAI Responses API adapter.

An oracle is any callable ``oracle(request, vocabulary)`` returning a
:class:`~statement_import.models.ClassificationResponse` (or the equivalent
JSON mapping) with one category per request item, in request order. The
pipeline treats it as untrusted: anything it returns is validated by
:mod:`statement_import.categorization` before use.

:class:`OpenAIClassificationOracle` is the default implementation. It makes
exactly one Responses API call per batch (no retries) and raises on any
transport or decoding problem so the caller can fall back to keyword rules.
No client is created and no environment is read at import time.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping
from typing import Any, Protocol

from openai import OpenAI, OpenAIError
from openai.types.responses import ResponseTextConfigParam

from . import prompting
from .config import openai_api_key, resolve_model
from .logging_setup import get_logger
from .models import CategorizedItem, ClassificationRequest, ClassificationResponse
from .vocabulary import CategoryVocabulary, split_by_direction

_logger = get_logger("statement_import.oracle")


class OracleError(RuntimeError):
    """The oracle could not be reached or refused the request."""


class ClassificationOracle(Protocol):
    def __call__(
        self, request: ClassificationRequest, vocabulary: CategoryVocabulary
    ) -> ClassificationResponse | Mapping[str, Any]: ...


# ---- Response decoding -------------------------------------------------------


def _extract_response_json_mapping(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON mapping from an OpenAI Responses SDK result.

    Prefer ``resp.output_text``; fall back to ``resp.output[0].content[0].text``.
    Raise ``ValueError`` if no text is found or it is not valid JSON.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content and len(content) > 0:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    # Some SDKs expose text as an object with a ``value`` string.
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")

    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError("Model output was not valid JSON per the requested schema") from e
    if not isinstance(decoded, Mapping):
        raise ValueError("Invalid response: expected a JSON object at top level")
    return decoded


def align_results_by_idx(body: Mapping[str, Any], *, num_items: int) -> list[str]:
    """Return raw categories aligned by batch-relative ``idx``.

    ``body["results"]`` must hold exactly ``num_items`` objects, each with an
    integer ``idx`` in range and a string ``category``; duplicate or missing
    indices are invalid.
    """

    results = body.get("results")
    if not isinstance(results, list):
        raise ValueError("Invalid response: missing or non-list 'results'")
    if len(results) != num_items:
        raise ValueError(f"Invalid response: expected {num_items} results, got {len(results)}")

    categories_by_idx: list[str | None] = [None] * num_items
    for item in results:
        if not isinstance(item, Mapping):
            raise ValueError("Invalid response: each result must be an object")
        idx = item.get("idx")
        if not isinstance(idx, int) or isinstance(idx, bool):
            raise ValueError("Invalid response: 'idx' must be an integer")
        if idx < 0 or idx >= num_items:
            raise ValueError(f"Invalid response: 'idx' out of range: {idx}")
        if categories_by_idx[idx] is not None:
            raise ValueError(f"Invalid response: duplicate idx {idx}")
        cat = item.get("category")
        if not isinstance(cat, str):
            raise ValueError("Invalid response: 'category' must be a string")
        categories_by_idx[idx] = cat.strip()

    missing = [i for i, v in enumerate(categories_by_idx) if v is None]
    if missing:
        raise ValueError(f"Invalid response: missing indices {missing}")
    return [c for c in categories_by_idx if c is not None]


# ---- OpenAI adapter ----------------------------------------------------------


class OpenAIClassificationOracle:
    """Categorize a batch with a single OpenAI Responses API call.

    Parameters
    ----------
    model:
        Model name; defaults to ``STATEMENT_IMPORT_MODEL`` or ``gpt-5``.
    client:
        Optional pre-built client. When omitted, one is created per call from
        ``OPENAI_API_KEY``.
    """

    def __init__(self, *, model: str | None = None, client: OpenAI | None = None) -> None:
        self._model = model
        self._client = client

    @property
    def model(self) -> str:
        return resolve_model(self._model)

    def _create_client(self) -> OpenAI:
        if self._client is not None:
            return self._client
        if not openai_api_key():
            raise OracleError("OPENAI_API_KEY environment variable is required for OpenAI access")
        return OpenAI()

    def __call__(
        self, request: ClassificationRequest, vocabulary: CategoryVocabulary
    ) -> ClassificationResponse:
        count = len(request.transactions)
        if count == 0:
            return ClassificationResponse(categorized_transactions=[])

        categories = split_by_direction(vocabulary)
        defaults = {d: vocabulary.default_for(d) for d in ("income", "expense")}
        user_content = prompting.build_user_content(
            prompting.serialize_request_to_json(request), categories, defaults=defaults
        )
        text_cfg = ResponseTextConfigParam(format=prompting.build_response_format(categories))

        client = self._create_client()
        _logger.info("oracle:request model=%s num_transactions=%d", self.model, count)
        t0 = time.perf_counter()
        try:
            resp = client.responses.create(
                model=self.model,
                instructions=prompting.build_system_instructions(),
                input=user_content,
                text=text_cfg,
            )
        except OpenAIError as e:
            dt_ms = (time.perf_counter() - t0) * 1000.0
            _logger.error(
                "oracle:request_failed latency_ms=%.2f error=%s", dt_ms, e.__class__.__name__
            )
            raise OracleError(f"OpenAI request failed: {e}") from e

        decoded = _extract_response_json_mapping(resp)
        aligned = align_results_by_idx(decoded, num_items=count)
        dt_ms = (time.perf_counter() - t0) * 1000.0
        _logger.info("oracle:done num_transactions=%d latency_ms=%.2f", count, dt_ms)

        return ClassificationResponse(
            categorized_transactions=[
                CategorizedItem(**item.model_dump(), category=cat)
                for item, cat in zip(request.transactions, aligned, strict=True)
            ]
        )


__all__ = [
    "OracleError",
    "ClassificationOracle",
    "OpenAIClassificationOracle",
    "align_results_by_idx",
]
