"""BPI (Banco Português de Investimento) statement source."""

import re

import pdfplumber

from ...logging_setup import get_logger
from ...models import Statement, TransactionType
from ...normalize import parse_flexible_datetime
from ...rules import CATCH_ALL_PRIORITY, title_case_description, transaction_rule
from ..base import StatementSource
from .table_parsers import (
    ACCOUNTING_BALANCE,
    AVAILABLE_BALANCE,
    extract_balance,
    extract_raw_rows,
    is_transaction_page,
)

ATM_PATTERN = re.compile(r"LEV.*ATM ELEC\s+\d+/\d+\s+", re.IGNORECASE)
CHEQUE_PATTERN = re.compile(r"CHEQUE\s+(\d+)", re.IGNORECASE)

logger = get_logger("fin_ledger.sources.bpi")


class BpiSource(StatementSource):
    """Source for BPI account statements.

    Statements list transactions newest first, with comma decimals and
    day-first dates.
    """

    name = "bpi"
    bank_name = "BPI"

    config_defaults = {
        "account_number": "1234567",
        "currency": "EUR",
        "decimal": ",",
        "dayfirst": True,
    }

    @classmethod
    def can_parse(cls, pdf: pdfplumber.PDF) -> bool:
        """Check if this document is a BPI statement.

        Looks for "bpinet" or "Banco BPI" on the first page.
        """
        if not pdf.pages:
            return False

        first_page_text = (pdf.pages[0].extract_text() or "").lower()
        return "bpinet" in first_page_text or "banco bpi" in first_page_text

    def parse_document(self, pdf: pdfplumber.PDF) -> Statement:
        """Parse the BPI document and return a Statement."""
        statement = self.create_statement()

        texts = [page.extract_text() or "" for page in pdf.pages]
        if texts:
            statement.closing_available = extract_balance(texts[0], AVAILABLE_BALANCE)
            statement.closing_balance = extract_balance(texts[0], ACCOUNTING_BALANCE)

        for page_num, text in enumerate(texts):
            if not is_transaction_page(text):
                logger.debug("Skipping page %d of BPI statement", page_num)
                continue

            for date, value_date, description, amount, balance in extract_raw_rows(text):
                tx = self.create_transaction(
                    raw_description=description,
                    amount=amount,
                    new_balance=balance,
                )
                tx.date = parse_flexible_datetime(date, dayfirst=self.config.dayfirst)
                tx.value_date = parse_flexible_datetime(value_date, dayfirst=self.config.dayfirst)
                statement.add_transaction(tx)

        if not statement.transactions:
            logger.warning("No transactions found in BPI statement")
        return statement

    @transaction_rule()
    def atm_withdrawal(self, tx) -> None:
        """ATM withdrawals: set the type and say where the cash came from."""
        if tx.real_amount >= 0:
            return
        match = ATM_PATTERN.search(tx.raw_description)
        if match:
            tx.description = f"Multibanco withdrawal at {tx.raw_description[match.end():]}"
            tx.type = TransactionType.ATM

    @transaction_rule()
    def cheque(self, tx) -> None:
        match = CHEQUE_PATTERN.search(tx.raw_description)
        if match:
            number = match.group(1)
            trailing = tx.raw_description[match.end():].strip()
            tx.description = f"Cheque #{number} withdrawn {trailing}".rstrip()
            tx.type = TransactionType.CHECK
            tx.check_number = number

    @transaction_rule(CATCH_ALL_PRIORITY)
    def tidy_description(self, tx) -> None:
        # BPI descriptions are all caps
        title_case_description(tx)
