"""End-to-end import session: paste → preview → (optional oracle) → confirm.

:class:`ImportSession` glues the pipeline stages together for one user and
owns the rule that a slow oracle answer must not clobber newer state. Every
paste and every cancel starts a new *generation*; an analysis remembers the
generation it started in and its result is dropped if the session has moved
on by the time it completes. At most one analysis may be outstanding per
generation.

The oracle call is the only blocking step, so hosts typically run
:meth:`ImportSession.analyze_with_oracle` on a worker thread; all state
transitions are guarded by a lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from typing import Literal

from .categorize import CategorizationOutcome, categorize_transactions
from .logging_setup import get_logger
from .models import ParsedTransaction, PaymentMethod, TransactionRecord
from .oracle import ClassificationOracle
from .parsing import parse_statement
from .persistence import TransactionStore
from .review import ImportReview
from .vocabulary import CategoryVocabulary

_logger = get_logger("statement_import.session")

NO_TRANSACTIONS_NOTICE = (
    "No transactions found. Lines must contain a date, an amount and a description."
)


@dataclass(frozen=True, slots=True)
class ImportResult:
    """What the user sees after a paste or an analysis."""

    status: Literal["preview", "empty"]
    review: ImportReview | None
    notice: str | None = None
    used_oracle: bool = False


@dataclass(frozen=True, slots=True)
class AnalysisTicket:
    generation: int
    transactions: tuple[ParsedTransaction, ...]


class ImportSession:
    """State for one user's import dialog."""

    def __init__(
        self,
        vocabulary: CategoryVocabulary,
        *,
        oracle: ClassificationOracle | None = None,
        today: date | None = None,
    ) -> None:
        self._vocabulary = vocabulary
        self._oracle = oracle
        self._today = today
        self._lock = threading.Lock()
        self._generation = 0
        self._parsed: tuple[ParsedTransaction, ...] = ()
        self._review: ImportReview | None = None
        self._in_flight: int | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def review(self) -> ImportReview | None:
        return self._review

    # ---- Paste ---------------------------------------------------------------

    def paste(self, text: str) -> ImportResult:
        """Parse ``text`` and preview keyword categories; supersedes any analysis."""

        parsed = tuple(parse_statement(text, today=self._today))
        with self._lock:
            self._generation += 1
            self._in_flight = None
            self._parsed = parsed
            if not parsed:
                self._review = None
                _logger.info("session:empty generation=%d", self._generation)
                return ImportResult(status="empty", review=None, notice=NO_TRANSACTIONS_NOTICE)
            outcome = categorize_transactions(parsed, self._vocabulary)
            self._review = ImportReview(outcome.items, self._vocabulary)
            return ImportResult(status="preview", review=self._review)

    # ---- Oracle analysis -----------------------------------------------------

    def begin_analysis(self) -> AnalysisTicket:
        """Reserve the single analysis slot for the current batch."""

        with self._lock:
            if not self._parsed:
                raise RuntimeError("nothing to analyze; paste a statement first")
            if self._in_flight == self._generation:
                raise RuntimeError("an analysis is already running for this batch")
            self._in_flight = self._generation
            return AnalysisTicket(generation=self._generation, transactions=self._parsed)

    def complete_analysis(self, ticket: AnalysisTicket, outcome: CategorizationOutcome) -> bool:
        """Apply ``outcome`` unless the session moved past ``ticket``; report whether applied."""

        with self._lock:
            if ticket.generation != self._generation:
                _logger.info(
                    "session:stale_analysis_discarded ticket=%d current=%d",
                    ticket.generation,
                    self._generation,
                )
                return False
            self._in_flight = None
            self._review = ImportReview(outcome.items, self._vocabulary)
            return True

    def analyze_with_oracle(self) -> ImportResult | None:
        """Re-categorize the current batch with the oracle.

        Returns ``None`` when the result arrived for a superseded batch and was
        discarded. Oracle failures never raise; they produce keyword categories
        and an informational notice.
        """

        ticket = self.begin_analysis()
        try:
            outcome = categorize_transactions(
                ticket.transactions, self._vocabulary, oracle=self._oracle
            )
        except BaseException:
            with self._lock:
                if self._in_flight == ticket.generation:
                    self._in_flight = None
            raise
        if not self.complete_analysis(ticket, outcome):
            return None
        return ImportResult(
            status="preview",
            review=self._review,
            notice=outcome.notice,
            used_oracle=outcome.used_oracle,
        )

    # ---- Terminal actions ----------------------------------------------------

    def confirm(
        self, user_id: str, store: TransactionStore, *, payment_method: PaymentMethod = "pix"
    ) -> list[TransactionRecord]:
        with self._lock:
            review = self._review
            if review is None:
                raise RuntimeError("nothing to confirm")
            records = review.confirm(user_id, store, payment_method=payment_method)
            self._reset_locked()
            return records

    def cancel(self) -> None:
        """Discard candidates; any analysis still running becomes stale."""

        with self._lock:
            if self._review is not None and not self._review.closed:
                self._review.cancel()
            self._reset_locked()

    def _reset_locked(self) -> None:
        self._generation += 1
        self._in_flight = None
        self._parsed = ()
        self._review = None


__all__ = ["ImportSession", "ImportResult", "AnalysisTicket", "NO_TRANSACTIONS_NOTICE"]
