"""Pytest configuration for test isolation.

Settings are read from the environment at call time, so a developer's shell
(or a ``.env``) could leak a real database URL, vocabulary file or API key
into tests. An autouse fixture clears them for every test, and cached SQL
engines are disposed afterwards so temporary SQLite files are released.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date

import pytest

from statement_import.db import dispose_engines

_ENV_VARS = (
    "OPENAI_API_KEY",
    "STATEMENT_IMPORT_MODEL",
    "STATEMENT_IMPORT_DATABASE_URL",
    "DATABASE_URL",
    "STATEMENT_IMPORT_VOCABULARY",
    "STATEMENT_IMPORT_LOG_LEVEL",
)

# Reference date used wherever a DD/MM line needs a year.
TODAY = date(2024, 6, 15)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    dispose_engines()


@pytest.fixture()
def sqlite_url(tmp_path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'transactions.db'}"
