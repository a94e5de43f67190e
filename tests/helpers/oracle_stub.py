"""Test helpers to stub the OpenAI Responses client used by ``oracle.py``.

The stub parses the user-content payload to extract the embedded batch JSON
array and returns a deterministic ``{"results": [...]}`` body. Tests provide a
``decide`` callable mapping each batch item to a category so the test surface
stays small and focused on inputs/outputs.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

BEGIN = "BEGIN_TRANSACTIONS_JSON\n"
END = "\nEND_TRANSACTIONS_JSON"


def extract_batch_from_user_content(user_content: str) -> list[dict[str, Any]]:
    b = user_content.find(BEGIN)
    e = user_content.rfind(END)
    if b == -1 or e == -1 or e <= b:
        raise AssertionError("oracle: user content missing embedded batch JSON block")
    return json.loads(user_content[b + len(BEGIN) : e])


class OpenAIStub:
    """Minimal stand-in for ``openai.OpenAI`` as used by the oracle adapter.

    Parameters
    ----------
    decide:
        Receives one batch item mapping (``idx``, ``description``, ``amount``,
        ``type``) and returns the category to answer with.
    calls_out:
        Appended with each ``responses.create`` call's kwargs.
    """

    def __init__(
        self,
        decide: Callable[[dict[str, Any]], str],
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._decide = decide
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                items = extract_batch_from_user_content(kwargs["input"])
                # Answer out of order; the adapter must realign by idx.
                results = [
                    {"idx": item["idx"], "category": self._outer._decide(item)}
                    for item in reversed(items)
                ]

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = json.dumps({"results": results})
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls


def make_openai_factory(
    decide: Callable[[dict[str, Any]], str], calls_out: list[dict[str, Any]]
) -> Callable[..., OpenAIStub]:
    """Return a class-like factory to monkeypatch ``statement_import.oracle.OpenAI``."""

    def _factory(*_a: Any, **_kw: Any) -> OpenAIStub:
        return OpenAIStub(decide, calls_out)

    return _factory
