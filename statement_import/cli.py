# ruff: noqa: I001
"""CLI for the ``statement_import`` package.

This module exposes callable command handlers (``cmd_parse``,
``cmd_import``) and a Typer-based console interface. Environment variables
(notably ``OPENAI_API_KEY`` and ``STATEMENT_IMPORT_DATABASE_URL``) are loaded
from a local ``.env`` using ``python-dotenv`` before delegating to command
logic. Business logic lives in :mod:`statement_import.session` and the
pipeline modules it composes.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv

from .config import resolve_vocabulary_path
from .logging_setup import configure_logging
from .models import CategorizedTransaction
from .vocabulary import CategoryVocabulary, load_vocabulary


# ---- Small module-level helpers used by CLI commands -------------------------


def _read_text(source: str) -> str:
    """Read statement text from a file path, or stdin when ``source`` is ``-``."""

    if source == "-":
        return sys.stdin.read()
    with open(source, encoding="utf-8") as f:
        return f.read()


def _load_vocabulary(path: str | None) -> CategoryVocabulary:
    return load_vocabulary(resolve_vocabulary_path(path))


def _candidate_to_dict(item: CategorizedTransaction) -> dict[str, Any]:
    tx = item.transaction
    return {
        "date": tx.date.isoformat(),
        "type": tx.direction,
        "amount": float(tx.amount),
        "description": tx.description,
        "category": item.category,
        "source": item.source,
    }


def _print_candidates(items: Sequence[CategorizedTransaction], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps([_candidate_to_dict(i) for i in items], ensure_ascii=False, indent=2))
        return
    # "<date>\t<type>\t<amount>\t<category>\t<description>" per line
    for item in items:
        tx = item.transaction
        print(
            f"{tx.date.isoformat()}\t{tx.direction}\t{tx.amount:.2f}\t"
            f"{item.category}\t{tx.description}"
        )


# ---- Command handlers --------------------------------------------------------


def cmd_parse(source: str, *, vocabulary_path: str | None = None, as_json: bool = False) -> int:
    """Parse a statement and print keyword-categorized candidates."""

    from .session import ImportSession

    try:
        text = _read_text(source)
    except FileNotFoundError:
        print(f"Error: File not found: {source}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Failed to read '{source}': {e}", file=sys.stderr)
        return 1

    try:
        vocabulary = _load_vocabulary(vocabulary_path)
    except (OSError, ValueError) as e:
        print(f"Error: failed to load vocabulary: {e}", file=sys.stderr)
        return 1

    result = ImportSession(vocabulary).paste(text)
    if result.review is None:
        print(result.notice)
        return 0
    _print_candidates(result.review.items, as_json=as_json)
    return 0


def cmd_import(
    source: str,
    *,
    user_id: str,
    use_ai: bool = False,
    review: bool = False,
    database_url: str | None = None,
    vocabulary_path: str | None = None,
    payment_method: str = "pix",
    model: str | None = None,
    dry_run: bool = False,
    as_json: bool = False,
) -> int:
    """Parse, categorize, optionally review, then append to the transaction store."""

    # Deferred imports to keep CLI startup fast
    from .oracle import OpenAIClassificationOracle
    from .persistence import SqlTransactionStore, records_to_dicts
    from .review import review_interactively
    from .session import ImportSession

    try:
        text = _read_text(source)
    except FileNotFoundError:
        print(f"Error: File not found: {source}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Failed to read '{source}': {e}", file=sys.stderr)
        return 1

    try:
        vocabulary = _load_vocabulary(vocabulary_path)
    except (OSError, ValueError) as e:
        print(f"Error: failed to load vocabulary: {e}", file=sys.stderr)
        return 1

    oracle = OpenAIClassificationOracle(model=model) if use_ai else None
    session = ImportSession(vocabulary, oracle=oracle)

    result = session.paste(text)
    if result.review is None:
        print(result.notice)
        return 0

    if use_ai:
        analyzed = session.analyze_with_oracle()
        if analyzed is not None and analyzed.notice:
            print(f"Note: {analyzed.notice}", file=sys.stderr)

    current = session.review
    if current is None:  # pragma: no cover - single-threaded CLI never goes stale
        print("Error: import was superseded", file=sys.stderr)
        return 1

    if review:
        from .term_ui import terminal_selector

        try:
            review_interactively(current, selector=terminal_selector)
        except (KeyboardInterrupt, EOFError):
            session.cancel()
            print("Import cancelled.", file=sys.stderr)
            return 1

    if dry_run:
        _print_candidates(current.items, as_json=as_json)
        session.cancel()
        return 0

    try:
        store = SqlTransactionStore(database_url=database_url)
        records = session.confirm(
            user_id, store, payment_method=payment_method  # type: ignore[arg-type]
        )
    except Exception as e:
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps(records_to_dicts(records), ensure_ascii=False, indent=2))
    else:
        for r in records:
            print(
                f"{r.id}\t{r.date.isoformat()}\t{r.type}\t{r.amount:.2f}\t"
                f"{r.category}\t{r.description}"
            )
        print(f"Imported {len(records)} transaction(s).", file=sys.stderr)
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import pasted bank statement text as categorized transactions. "
        "Loads OPENAI_API_KEY and STATEMENT_IMPORT_* settings from a local .env."
    ),
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("parse")
def parse_cmd(
    source: str = typer.Argument(..., help="Statement text file, or '-' for stdin."),
    *,
    vocabulary: str | None = typer.Option(
        None, help="Vocabulary JSON file (falls back to STATEMENT_IMPORT_VOCABULARY)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print candidates as JSON."),
) -> None:
    """Print the transactions found in a statement with suggested categories."""

    _exit(cmd_parse(source, vocabulary_path=vocabulary, as_json=as_json))


@app.command("import")
def import_cmd(
    source: str = typer.Argument(..., help="Statement text file, or '-' for stdin."),
    *,
    user_id: str = typer.Option(..., "--user-id", help="Owner of the imported transactions."),
    ai: bool = typer.Option(False, "--ai", help="Categorize with OpenAI (keyword fallback)."),
    review: bool = typer.Option(False, "--review", help="Review each category interactively."),
    database_url: str | None = typer.Option(
        None, help="Override STATEMENT_IMPORT_DATABASE_URL / DATABASE_URL."
    ),
    vocabulary: str | None = typer.Option(
        None, help="Vocabulary JSON file (falls back to STATEMENT_IMPORT_VOCABULARY)."
    ),
    payment_method: str = typer.Option(
        "pix", help="Payment method for every imported record (cash, pix, credit_card)."
    ),
    model: str | None = typer.Option(
        None, help="OpenAI model (falls back to STATEMENT_IMPORT_MODEL, then gpt-5)."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the result without storing it."),
    as_json: bool = typer.Option(False, "--json", help="Print output as JSON."),
) -> None:
    """Import a statement into the transaction store."""

    _exit(
        cmd_import(
            source,
            user_id=user_id,
            use_ai=ai,
            review=review,
            database_url=database_url,
            vocabulary_path=vocabulary,
            payment_method=payment_method,
            model=model,
            dry_run=dry_run,
            as_json=as_json,
        )
    )


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m statement_import.cli`
    app()
