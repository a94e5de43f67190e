"""Terminal category selector for the review step (prompt_toolkit-based).

Kept apart from :mod:`statement_import.review` so the review logic stays
free of terminal concerns and the prompt can be tested with pipe input.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .models import CategorizedTransaction


class _PrefixSuggest(AutoSuggest):
    """Grey inline completion for the first choice starting with the typed text."""

    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        match = _best_prefix_match(self._vocab, text)
        if match is None:
            return None
        return Suggestion(match[len(text) :])


class _ChoiceValidator(Validator):
    def __init__(self, choices: Sequence[str]) -> None:
        self._choices = set(choices)

    def validate(self, document) -> None:
        if document.text not in self._choices:
            raise ValidationError(message="Pick one of the listed categories (Tab to browse)")


def _best_prefix_match(words: Sequence[str], text: str) -> str | None:
    """First word matching ``text`` as a case-insensitive prefix.

    ``None`` when ``text`` already spells a word exactly.
    """

    if not text:
        return None
    lower = text.lower()
    for w in words:
        wl = w.lower()
        if wl == lower:
            return None if w == text else w
        if wl.startswith(lower):
            return w
    return None


def _replace_text(buffer, text: str) -> None:
    """Replace the buffer with the canonical spelling of a matched label."""

    buffer.text = text
    buffer.cursor_position = len(text)


def select_category(
    choices: Sequence[str],
    *,
    default: str,
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for one of ``choices``, pre-filled with ``default``.

    Only labels in ``choices`` are accepted, so a category of the wrong
    direction cannot be entered. Tab completes the inline suggestion or opens
    the completion menu; Enter applies the highlighted completion or the
    inline suggestion, then accepts.
    """

    words = list(choices)
    if not words:
        raise ValueError("choices must not be empty")

    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)
    kb = KeyBindings()
    menu_opened = False

    def _open_or_cycle_menu(b) -> None:
        nonlocal menu_opened
        if b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()
        menu_opened = True

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        _open_or_cycle_menu(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cand = _best_prefix_match(words, b.document.text)
        if cand:
            _replace_text(b, cand)
        else:
            _open_or_cycle_menu(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _best_prefix_match(words, b.document.text)
            if cand:
                _replace_text(b, cand)
            elif menu_opened and not b.document.text:
                # Completions are computed asynchronously; headless input can
                # press Enter before the menu is populated.
                b.insert_text(words[0])
        b.validate_and_handle()

    prompt_kwargs: dict[str, Any] = {
        "message": message,
        "completer": completer,
        "default": default if default in words else "",
        "key_bindings": kb,
        "auto_suggest": _PrefixSuggest(words),
        "validator": _ChoiceValidator(words),
        "validate_while_typing": False,
        "style": Style.from_dict({"auto-suggestion": "fg:#888888"}),
    }

    if session is None:
        sess: PromptSession = PromptSession()
    else:
        sess = PromptSession(
            input=getattr(session, "input", None),
            output=getattr(session, "output", None),
        )
    return sess.prompt(**prompt_kwargs)


def format_candidate(item: CategorizedTransaction) -> str:
    """One-line summary shown above the prompt."""

    tx = item.transaction
    sign = "+" if tx.direction == "income" else "-"
    return f"{tx.date.isoformat()}  {sign}{tx.amount:.2f}  {tx.description}  [{item.category}]"


def terminal_selector(
    choices: Sequence[str], default: str, item: CategorizedTransaction
) -> str:
    """:data:`~statement_import.review.CategorySelector` backed by :func:`select_category`."""

    print(format_candidate(item))
    return select_category(choices, default=default)


__all__ = ["select_category", "format_candidate", "terminal_selector"]
