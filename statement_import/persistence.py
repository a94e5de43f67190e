"""Transaction store implementations.

The pipeline only needs :class:`TransactionStore`: an append of a batch of
confirmed records, which must land together or not at all. Two stores ship
with the package:

- :class:`InMemoryTransactionStore` for tests and embedding.
- :class:`SqlTransactionStore`, backed by SQLAlchemy, which writes a batch in
  a single database transaction.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy import CheckConstraint, Date, DateTime, Numeric, String, Text, func, select
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base, session_scope
from .logging_setup import get_logger
from .models import TransactionRecord

_logger = get_logger("statement_import.persistence")


class TransactionStore(Protocol):
    def append_many(self, records: Sequence[TransactionRecord]) -> None: ...

    def list_for_user(self, user_id: str) -> list[TransactionRecord]: ...


# ---------------------------
# In-memory store
# ---------------------------


class InMemoryTransactionStore:
    """Append-only list of records, grouped by user."""

    def __init__(self) -> None:
        self._records: list[TransactionRecord] = []
        self._lock = threading.Lock()

    def append_many(self, records: Sequence[TransactionRecord]) -> None:
        batch = list(records)
        with self._lock:
            self._records.extend(batch)
        _logger.info("store:append backend=memory count=%d", len(batch))

    def list_for_user(self, user_id: str) -> list[TransactionRecord]:
        with self._lock:
            return [r for r in self._records if r.user_id == user_id]

    def __len__(self) -> int:
        return len(self._records)


# ---------------------------
# SQLAlchemy store
# ---------------------------


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint("type IN ('income', 'expense')", name="ck_transactions_type"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_nonneg"),
    )


def _record_to_row(r: TransactionRecord) -> TransactionRow:
    return TransactionRow(
        id=r.id,
        user_id=r.user_id,
        type=r.type,
        amount=r.amount,
        description=r.description,
        category=r.category,
        date=r.date,
        payment_method=r.payment_method,
    )


def _row_to_record(row: TransactionRow) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        user_id=row.user_id,
        type=row.type,  # type: ignore[arg-type]
        amount=Decimal(row.amount),
        description=row.description,
        category=row.category,
        date=row.date,
        payment_method=row.payment_method,  # type: ignore[arg-type]
    )


class SqlTransactionStore:
    """SQLAlchemy-backed store; the table is created on first engine use."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def append_many(self, records: Sequence[TransactionRecord]) -> None:
        batch = list(records)
        if not batch:
            return
        with session_scope(database_url=self._database_url) as session:
            session.add_all(_record_to_row(r) for r in batch)
        _logger.info("store:append backend=sql count=%d", len(batch))

    def list_for_user(self, user_id: str) -> list[TransactionRecord]:
        with session_scope(database_url=self._database_url) as session:
            rows = (
                session.execute(
                    select(TransactionRow)
                    .where(TransactionRow.user_id == user_id)
                    .order_by(TransactionRow.date, TransactionRow.id)
                )
                .scalars()
                .all()
            )
            return [_row_to_record(r) for r in rows]


def records_to_dicts(records: Iterable[TransactionRecord]) -> list[dict[str, object]]:
    return [r.to_dict() for r in records]


__all__ = [
    "TransactionStore",
    "InMemoryTransactionStore",
    "SqlTransactionStore",
    "TransactionRow",
    "records_to_dicts",
]
