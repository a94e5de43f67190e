"""Environment-driven settings.

All values are read lazily at call time so a ``.env`` loaded by the CLI (via
``python-dotenv``) is honored, and tests can ``monkeypatch.setenv`` freely.
"""

from __future__ import annotations

import os

DEFAULT_MODEL = "gpt-5"


def _env(name: str) -> str | None:
    val = os.getenv(name)
    if val is None:
        return None
    val = val.strip()
    return val or None


def resolve_database_url(override: str | None = None) -> str:
    """Return the store URL: explicit override, then env, else raise."""

    url = override or _env("STATEMENT_IMPORT_DATABASE_URL") or _env("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "No database URL configured; set STATEMENT_IMPORT_DATABASE_URL or DATABASE_URL"
        )
    return url


def resolve_model(override: str | None = None) -> str:
    return override or _env("STATEMENT_IMPORT_MODEL") or DEFAULT_MODEL


def resolve_vocabulary_path(override: str | None = None) -> str | None:
    return override or _env("STATEMENT_IMPORT_VOCABULARY")


def resolve_log_level() -> str | None:
    return _env("STATEMENT_IMPORT_LOG_LEVEL")


def openai_api_key() -> str | None:
    return _env("OPENAI_API_KEY")


__all__ = [
    "DEFAULT_MODEL",
    "resolve_database_url",
    "resolve_model",
    "resolve_vocabulary_path",
    "resolve_log_level",
    "openai_api_key",
]
