"""Abstract base class for statement sources."""

import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Protocol

import pdfplumber

from ..config import SourceConfig
from ..errors import LedgerError
from ..logging_setup import get_logger
from ..models import Statement, Transaction
from ..rules import (
    CATCH_ALL_PRIORITY,
    RULE_PRIORITY_ATTR,
    RuleEngine,
    infer_credit_debit,
    transaction_rule,
)

logger = get_logger("fin_ledger.sources")


class PageFetcher(Protocol):
    """Fetches the raw statement document from the bank."""

    def fetch(self) -> bytes: ...


class StatementSource(ABC):
    """Base class for bank-specific statement sources.

    A source opens the statement document (a local file given as
    ``input_path``, or whatever the ``fetcher`` downloads), extracts a
    Statement from it, and runs its transaction rules over the result.

    Rules are methods marked with ``transaction_rule``. A subclass that
    overrides a rule method must mark the override too; it then runs in
    the base method's place with the override's priority.
    """

    name: str = "unknown"
    bank_name: str = "Unknown"

    # Defaults merged into the SourceConfig built by ``make_config``
    config_defaults: dict[str, Any] = {}

    def __init__(
        self,
        config: SourceConfig,
        input_path: Path | None = None,
        fetcher: PageFetcher | None = None,
    ):
        self.config = config
        self.input_path = input_path
        self.fetcher = fetcher
        self.pdf: pdfplumber.PDF | None = None
        self.rule_engine = self._build_rule_engine()

    def __enter__(self):
        self.pdf = self.open_document()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.pdf:
            self.pdf.close()

    @classmethod
    def make_config(cls, **overrides) -> SourceConfig:
        """Build this source's config from its defaults and ``overrides``."""
        values = {**cls.config_defaults}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return SourceConfig(**values)

    def open_document(self) -> pdfplumber.PDF:
        """Open the statement document from the input file or the fetcher."""
        if self.input_path is not None:
            logger.debug(
                "Reading %s statement from %s instead of fetching it",
                self.bank_name,
                self.input_path,
            )
            return pdfplumber.open(self.input_path)

        if self.fetcher is None:
            raise LedgerError(f"{self.bank_name} source needs an input file or a page fetcher")

        data = self.fetcher.fetch()
        if not data:
            raise LedgerError(f"{self.bank_name} source failed to load the statement document")
        return pdfplumber.open(io.BytesIO(data))

    @abstractmethod
    def parse_document(self, pdf: pdfplumber.PDF) -> Statement:
        """Extract a Statement from an open document."""
        pass

    @classmethod
    @abstractmethod
    def can_parse(cls, pdf: pdfplumber.PDF) -> bool:
        """Check if this source can handle the given document."""
        pass

    def scrape_statement(self) -> Statement:
        """Parse the open document and apply the transaction rules."""
        if not self.pdf:
            raise RuntimeError("Document not opened. Use 'with' context manager.")

        statement = self.parse_document(self.pdf)
        logger.info(
            "Extracted %d transactions from %s statement",
            len(statement.transactions),
            self.bank_name,
        )
        return self.rule_engine.apply_all(statement)

    def create_statement(self) -> Statement:
        """Create an empty Statement configured for this source."""
        return Statement(
            account_number=self.config.account_number,
            account_type=self.config.account_type,
            bank_id=self.config.bank_id,
            currency=self.config.currency,
            decimal=self.config.decimal,
        )

    def create_transaction(self, **fields) -> Transaction:
        """Create a Transaction using this source's decimal separator."""
        return Transaction(
            decimal=self.config.decimal,
            strict=self.config.strict_amounts,
            **fields,
        )

    def _build_rule_engine(self) -> RuleEngine:
        engine = RuleEngine()
        seen: set[str] = set()
        for klass in reversed(type(self).__mro__):
            for attr_name in vars(klass):
                if attr_name in seen:
                    continue
                member = getattr(type(self), attr_name, None)
                priority = getattr(member, RULE_PRIORITY_ATTR, None)
                if priority is None:
                    continue
                seen.add(attr_name)
                engine.register(
                    priority,
                    getattr(self, attr_name),
                    name=f"{type(self).__name__}.{attr_name}",
                )
        return engine

    @transaction_rule(CATCH_ALL_PRIORITY)
    def infer_transaction_type(self, tx: Transaction) -> None:
        """Any transaction still typed OTHER becomes CREDIT or DEBIT."""
        infer_credit_debit(tx)
