"""Public interface for the ``statement_import`` package.

This module exposes the pipeline entry points and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .categorize import CategorizationOutcome, categorize_transactions
from .models import (
    CategorizedTransaction,
    ClassificationRequest,
    ClassificationResponse,
    Direction,
    ParsedTransaction,
    PaymentMethod,
    TransactionRecord,
)
from .oracle import ClassificationOracle, OpenAIClassificationOracle, OracleError
from .parsing import parse_statement
from .persistence import InMemoryTransactionStore, SqlTransactionStore, TransactionStore
from .review import ImportReview, review_interactively
from .session import ImportResult, ImportSession
from .vocabulary import DEFAULT_VOCABULARY, CategorySpec, CategoryVocabulary, load_vocabulary

__all__ = [
    # Pipeline
    "parse_statement",
    "categorize_transactions",
    "CategorizationOutcome",
    "ImportReview",
    "review_interactively",
    "ImportSession",
    "ImportResult",
    # Oracle
    "ClassificationOracle",
    "OpenAIClassificationOracle",
    "OracleError",
    # Stores
    "TransactionStore",
    "InMemoryTransactionStore",
    "SqlTransactionStore",
    # Vocabulary
    "CategorySpec",
    "CategoryVocabulary",
    "DEFAULT_VOCABULARY",
    "load_vocabulary",
    # Models
    "Direction",
    "PaymentMethod",
    "ParsedTransaction",
    "CategorizedTransaction",
    "TransactionRecord",
    "ClassificationRequest",
    "ClassificationResponse",
]
