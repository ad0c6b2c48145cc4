"""Build a deduplicated, mergeable transaction ledger from bank statements."""

from .config import SourceConfig
from .errors import (
    FormatError,
    LedgerError,
    MergeConflictError,
    UploadError,
    ValidationError,
)
from .models import AccountType, Payee, Statement, Transaction, TransactionType
from .normalize import (
    parse_amount,
    parse_flexible_datetime,
    to_interchange_datetime,
    to_record_datetime,
)
from .rules import CATCH_ALL_PRIORITY, RuleEngine, transaction_rule

__all__ = [
    "AccountType",
    "CATCH_ALL_PRIORITY",
    "FormatError",
    "LedgerError",
    "MergeConflictError",
    "Payee",
    "RuleEngine",
    "SourceConfig",
    "Statement",
    "Transaction",
    "TransactionType",
    "UploadError",
    "ValidationError",
    "parse_amount",
    "parse_flexible_datetime",
    "to_interchange_datetime",
    "to_record_datetime",
    "transaction_rule",
]
