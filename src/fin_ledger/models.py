"""Pydantic models for bank statement data.

A ``Transaction`` keeps the raw text scraped from the bank (amounts, balance,
description) alongside the values derived from it, and compares equal to any
other scrape of the same real-world transaction. A ``Statement`` holds an
ordered list of transactions for one account and knows how to merge itself
with an overlapping statement without duplicating entries.
"""

import csv
import hashlib
import io
import threading
import xml.etree.ElementTree as ET
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from .errors import FormatError, MergeConflictError, ValidationError
from .logging_setup import get_logger
from .normalize import (
    DECIMAL_SEPARATORS,
    parse_amount,
    parse_flexible_datetime,
    to_interchange_datetime,
    to_record_datetime,
)

logger = get_logger("fin_ledger.models")

RECORD_HEADER = [
    "Date",
    "Value-Date",
    "Description",
    "Amount",
    "New-Balance",
    "Raw-Amount",
    "Raw-New-Balance",
    "Raw-Description",
    "OFX-ID",
]

RECORD_FIELD_COUNT = len(RECORD_HEADER)

ID_DELIMITER = "|"


class TransactionType(str, Enum):
    """OFX transaction types (TRNTYPE)."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    INT = "INT"
    DIV = "DIV"
    FEE = "FEE"
    SRVCHG = "SRVCHG"
    DEP = "DEP"
    ATM = "ATM"
    POS = "POS"
    XFER = "XFER"
    CHECK = "CHECK"
    PAYMENT = "PAYMENT"
    CASH = "CASH"
    DIRECTDEP = "DIRECTDEP"
    DIRECTDEBIT = "DIRECTDEBIT"
    REPEATPMT = "REPEATPMT"
    OTHER = "OTHER"


class AccountType(str, Enum):
    """OFX bank account types (ACCTTYPE)."""

    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    MONEYMRKT = "MONEYMRKT"
    CREDITLINE = "CREDITLINE"


def _add(parent: ET.Element, tag: str, text=None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = "" if text is None else str(text)
    return element


class Payee(BaseModel):
    """The receiving party of a payment."""

    model_config = ConfigDict(validate_assignment=True)

    name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    phone: str | None = None

    def to_interchange_element(self) -> ET.Element:
        """Build the OFX PAYEE element."""
        element = ET.Element("PAYEE")
        _add(element, "NAME", self.name)
        _add(element, "ADDR1", self.address)
        _add(element, "CITY", self.city)
        _add(element, "STATE", self.state)
        _add(element, "POSTALCODE", self.postal_code)
        if self.country is not None:
            _add(element, "COUNTRY", self.country)
        _add(element, "PHONE", self.phone)
        return element

    def __str__(self) -> str:
        return self.name or ""


class Transaction(BaseModel):
    """A single bank transaction.

    Equality, hashing and the generated id depend only on ``date``,
    ``raw_description``, ``amount``, ``type`` and ``new_balance``, with the
    date compared through its interchange encoding. ``value_date`` is left
    out because banks often fill it in on a later scrape.

    Rules may overwrite ``amount``, but doing so after the id has been read
    leaves the cached id describing the old amount.
    """

    model_config = ConfigDict(validate_assignment=True)

    date: datetime | None = None
    value_date: datetime | None = None
    raw_description: str = ""
    amount: str = "0"
    new_balance: str = "0"
    type: TransactionType = TransactionType.OTHER
    payee: Payee | None = None
    check_number: str | None = None
    decimal: str = "."
    strict: bool = False
    fitid: str | None = None

    _description: str | None = PrivateAttr(default=None)

    @field_validator("date", "value_date", mode="before")
    @classmethod
    def _parse_dates(cls, value):
        return parse_flexible_datetime(value)

    @field_validator("raw_description", mode="before")
    @classmethod
    def _default_description(cls, value):
        return "" if value is None else value

    @field_validator("amount", "new_balance", mode="before")
    @classmethod
    def _amount_text(cls, value):
        if value is None:
            return "0"
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        return value

    @field_validator("check_number", mode="before")
    @classmethod
    def _check_number_text(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("decimal")
    @classmethod
    def _check_decimal(cls, value: str) -> str:
        if value not in DECIMAL_SEPARATORS:
            raise ValidationError(f"Unsupported decimal separator: {value!r}")
        return value

    @property
    def description(self) -> str:
        """The rule-customised description, or the raw one if never set."""
        return self.raw_description if self._description is None else self._description

    @description.setter
    def description(self, value: str | None) -> None:
        self._description = value

    @property
    def real_amount(self) -> Decimal:
        return parse_amount(self.amount, self.decimal, strict=self.strict)

    @property
    def real_new_balance(self) -> Decimal:
        return parse_amount(self.new_balance, self.decimal, strict=self.strict)

    @property
    def effective_description(self) -> str:
        """The description prefixed with the payee name when there is one."""
        if self.payee is not None and self.payee.name:
            return f"{self.payee.name} - {self.description}"
        return self.description

    def identity_key(self) -> tuple[str, str, str, str, str]:
        return (
            to_interchange_datetime(self.date),
            self.raw_description,
            self.amount,
            self.type.value,
            self.new_balance,
        )

    def compute_id(self) -> str:
        """Digest the identity fields into a stable transaction id."""
        date_text, raw_description, amount, type_text, new_balance = self.identity_key()
        text = ID_DELIMITER.join([date_text, raw_description, type_text, amount, new_balance])
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    @property
    def id(self) -> str:
        """The OFX FITID: an assigned id is kept, otherwise computed once."""
        if self.fitid is None:
            self.fitid = self.compute_id()
        return self.fitid

    def __eq__(self, other) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.identity_key() == other.identity_key()

    def __hash__(self) -> int:
        return hash(self.identity_key())

    def __str__(self) -> str:
        return (
            f"Transaction(id={self.fitid}, date={to_record_datetime(self.date)}, "
            f"raw_description={self.raw_description!r}, type={self.type.value}, "
            f"amount={self.amount}, new_balance={self.new_balance})"
        )

    @staticmethod
    def record_header() -> list[str]:
        return list(RECORD_HEADER)

    def to_record_row(self) -> list[str]:
        """Render as the nine record-format fields.

        Order: date, value date, effective description, numeric amount,
        numeric new balance, raw amount, raw new balance, raw description, id.
        """
        return [
            to_record_datetime(self.date),
            to_record_datetime(self.value_date),
            self.effective_description,
            str(self.real_amount),
            str(self.real_new_balance),
            self.amount,
            self.new_balance,
            self.raw_description,
            self.id,
        ]

    @classmethod
    def from_record_row(cls, row, decimal: str = ".") -> "Transaction":
        """Rebuild a Transaction from a record-format row.

        The numeric columns (3 and 4) are ignored and recomputed from the raw
        amount and balance. The stored id is kept as-is. The row has no type
        column, so the result is typed OTHER until rules are run over it.

        Raises:
            FormatError: If the row does not have exactly nine fields
        """
        row = list(row)
        if len(row) != RECORD_FIELD_COUNT:
            lines = "\n\t".join(str(value) for value in row)
            raise FormatError(
                f"Failed to create Transaction from record row:\n\t{lines}\n"
                f" - {RECORD_FIELD_COUNT} fields are required in the form: "
                + ", ".join(RECORD_HEADER)
            )

        tx = cls(
            date=row[0],
            value_date=row[1],
            amount=row[5],
            new_balance=row[6],
            raw_description=row[7],
            fitid=row[8] or None,
            decimal=decimal,
        )
        tx.description = row[2]
        return tx

    def to_interchange_element(self) -> ET.Element:
        """Build the OFX STMTTRN element."""
        element = ET.Element("STMTTRN")
        _add(element, "TRNTYPE", self.type.value)
        _add(element, "DTPOSTED", to_interchange_datetime(self.date))
        _add(element, "TRNAMT", self.amount)
        _add(element, "FITID", self.id)
        if self.check_number is not None:
            _add(element, "CHECKNUM", self.check_number)
        if self.payee is not None:
            element.append(self.payee.to_interchange_element())
        _add(element, "MEMO", self.effective_description)
        return element


def _find_discontinuity(
    ours: list[Transaction], theirs: list[Transaction]
) -> Transaction | None:
    """Return the first transaction of ``theirs`` that stops it extending ``ours``.

    ``theirs`` extends ``ours`` when the transactions they share form one
    unbroken run in both lists, and that run either covers the end of
    ``ours`` (new transactions follow it) or ``theirs`` adds nothing new.
    New transactions may not precede the shared run.
    """
    position: dict[Transaction, int] = {}
    for index, tx in enumerate(ours):
        position.setdefault(tx, index)

    leading_new = None
    expected = None  # index in ``ours`` the next shared transaction must have
    in_tail = False

    for tx in theirs:
        index = position.get(tx)
        if index is None:
            if expected is None:
                if leading_new is None:
                    leading_new = tx
            elif expected != len(ours):
                return tx
            else:
                in_tail = True
            continue

        if in_tail or (expected is not None and index != expected):
            return tx
        if leading_new is not None:
            return leading_new
        expected = index + 1

    return None


class Statement(BaseModel):
    """An ordered list of transactions for one account over one period.

    Transactions must be held in a consistent chronological order (newest
    first or newest last), and statements that will be merged must use the
    same order. Closing balances default to the first transaction's new
    balance; the period defaults to the dates of the first and last
    transactions. Each is worked out on first read and then kept.
    """

    model_config = ConfigDict(validate_assignment=True)

    account_number: str
    account_type: AccountType = AccountType.CHECKING
    bank_id: str | None = None
    currency: str = "EUR"
    decimal: str = "."
    transactions: list[Transaction] = Field(default_factory=list)

    _closing_balance: str | None = PrivateAttr(default=None)
    _closing_available: str | None = PrivateAttr(default=None)
    _from_date: datetime | None = PrivateAttr(default=None)
    _to_date: datetime | None = PrivateAttr(default=None)
    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    @field_validator("account_number")
    @classmethod
    def _check_account_number(cls, value: str) -> str:
        if not 1 <= len(value) <= 22:
            raise ValidationError(
                f"Account number must be 1-22 characters, got {len(value)}: {value!r}"
            )
        return value

    @field_validator("bank_id")
    @classmethod
    def _check_bank_id(cls, value: str | None) -> str | None:
        if value is not None and len(value) > 9:
            raise ValidationError(f"Bank id must be at most 9 characters: {value!r}")
        return value

    @field_validator("currency")
    @classmethod
    def _check_currency(cls, value: str) -> str:
        if len(value) != 3 or not value.isalpha():
            raise ValidationError(f"Currency must be a 3-letter code: {value!r}")
        return value.upper()

    @field_validator("decimal")
    @classmethod
    def _check_decimal(cls, value: str) -> str:
        if value not in DECIMAL_SEPARATORS:
            raise ValidationError(f"Unsupported decimal separator: {value!r}")
        return value

    def add_transaction(self, transaction: Transaction) -> None:
        self.transactions.append(transaction)

    def empty_copy(self) -> "Statement":
        """A statement for the same account with no transactions."""
        return Statement(**self.model_dump(exclude={"transactions"}))

    # -- derived values ---------------------------------------------------

    def _endpoint_dates(self) -> list[datetime]:
        if not self.transactions:
            return []
        ends = (self.transactions[0].date, self.transactions[-1].date)
        return [d for d in ends if d is not None]

    @property
    def closing_balance(self) -> str | None:
        if self._closing_balance is None and self.transactions:
            self._closing_balance = self.transactions[0].new_balance
        return self._closing_balance

    @closing_balance.setter
    def closing_balance(self, value: str | None) -> None:
        self._closing_balance = value

    @property
    def closing_available(self) -> str | None:
        if self._closing_available is None and self.transactions:
            self._closing_available = self.transactions[0].new_balance
        return self._closing_available

    @closing_available.setter
    def closing_available(self, value: str | None) -> None:
        self._closing_available = value

    @property
    def from_date(self) -> datetime | None:
        if self._from_date is None:
            dates = self._endpoint_dates()
            if dates:
                self._from_date = min(dates)
        return self._from_date

    @from_date.setter
    def from_date(self, value) -> None:
        self._from_date = parse_flexible_datetime(value)

    @property
    def to_date(self) -> datetime | None:
        if self._to_date is None:
            dates = self._endpoint_dates()
            if dates:
                self._to_date = max(dates)
        return self._to_date

    @to_date.setter
    def to_date(self, value) -> None:
        self._to_date = parse_flexible_datetime(value)

    @property
    def newest_first(self) -> bool | None:
        """True when transactions run newest to oldest, None if unknown."""
        if len(self.transactions) < 2:
            return None
        first, last = self.transactions[0].date, self.transactions[-1].date
        if first is None or last is None or first == last:
            return None
        return first > last

    def finalize(self) -> "Statement":
        """Work out any unset balances and dates now rather than on first read."""
        _ = (self.closing_balance, self.closing_available, self.from_date, self.to_date)
        return self

    def _reset_derived(self) -> None:
        self._closing_balance = None
        self._closing_available = None
        self._from_date = None
        self._to_date = None

    def date_range(self) -> tuple[datetime | None, datetime | None]:
        return (self.from_date, self.to_date)

    # -- merging ----------------------------------------------------------

    def merge_transactions(self, other: "Statement") -> list[Transaction]:
        """Return the ordered union of this statement's and ``other``'s transactions.

        Transactions of ``other`` already present here are dropped; the rest
        follow this statement's transactions in ``other``'s order.

        Raises:
            MergeConflictError: If ``other`` does not contiguously extend (or
                fall inside) this statement
        """
        if not isinstance(other, Statement):
            raise TypeError(f"Cannot merge a Statement with {type(other).__name__}")

        ours = self.transactions
        union = list(dict.fromkeys([*ours, *other.transactions]))

        offending = None
        if union[: len(ours)] != ours:
            seen: set[Transaction] = set()
            for tx in ours:
                if tx in seen:
                    offending = tx
                    break
                seen.add(tx)
        else:
            offending = _find_discontinuity(ours, other.transactions)

        if offending is not None or union[: len(ours)] != ours:
            left = self._format_range(self.date_range())
            right = self._format_range(other.date_range())
            logger.debug("Merge of %s with %s failed at %s", left, right, offending)
            raise MergeConflictError(
                f"Failed to merge statement covering {right} into statement "
                f"covering {left}: transactions overlap non-contiguously at {offending}",
                left_range=self.date_range(),
                right_range=other.date_range(),
                offending=offending,
            )

        logger.debug(
            "Merged %d + %d transactions into %d",
            len(ours),
            len(other.transactions),
            len(union),
        )
        return union

    def merge(self, other: "Statement") -> "Statement":
        """Return a new statement holding this statement merged with ``other``.

        Neither statement is changed. The merged statement re-derives its
        closing balances and period from the merged transactions.
        """
        union = self.merge_transactions(other)
        merged = self.empty_copy()
        merged.transactions = union
        return merged

    def merge_in_place(self, other: "Statement") -> "Statement":
        """Merge ``other`` into this statement, replacing its transactions."""
        with self._lock:
            union = self.merge_transactions(other)
            self.transactions = union
            self._reset_derived()
        return self

    @staticmethod
    def _format_range(date_range: tuple[datetime | None, datetime | None]) -> str:
        start, end = date_range
        return f"{to_record_datetime(start) or '?'} to {to_record_datetime(end) or '?'}"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Statement):
            return NotImplemented
        return (
            self.from_date == other.from_date
            and self.to_date == other.to_date
            and self.closing_balance == other.closing_balance
            and self.closing_available == other.closing_available
            and self.transactions == other.transactions
        )

    __hash__ = None

    def __str__(self) -> str:
        lines = [
            f"Statement: close_bal = {self.closing_balance}, "
            f"avail = {self.closing_available}, curr = {self.currency}, transactions:"
        ]
        lines.extend(f"\t\t{tx}" for tx in self.transactions)
        return "\n".join(lines)

    def summary(self) -> dict:
        counts: dict[str, int] = {}
        for tx in self.transactions:
            counts[tx.type.value] = counts.get(tx.type.value, 0) + 1
        return {
            "account_number": self.account_number,
            "total_transactions": len(self.transactions),
            "from_date": to_record_datetime(self.from_date),
            "to_date": to_record_datetime(self.to_date),
            "closing_balance": self.closing_balance,
            "by_type": counts,
        }

    # -- record format ----------------------------------------------------

    def to_record_rows(self) -> list[list[str]]:
        return [tx.to_record_row() for tx in self.transactions]

    def to_records(self, header: bool = False) -> str:
        """Render the transactions as CSV text, one row each.

        No header is written by default so that successive outputs can be
        concatenated.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        if header:
            writer.writerow(RECORD_HEADER)
        writer.writerows(self.to_record_rows())
        return buffer.getvalue()

    def read_records(self, source: str | Path, rule_engine=None) -> "Statement":
        """Append transactions read from CSV text or a CSV file.

        ``source`` is a file when it is a ``Path``, or a string containing
        no comma; any other string is treated as CSV text. A header row and
        blank lines are skipped.

        Records do not store the transaction type, so rows come back as
        OTHER. Pass the ``rule_engine`` that processed the statement before
        it was written to re-derive types from the raw fields; without it
        the read-back transactions only equal OTHER-typed originals.

        Raises:
            FormatError: If a row does not have nine fields
        """
        if isinstance(source, Path) or "," not in source:
            text = Path(source).read_text(encoding="utf-8")
        else:
            text = source

        read = []
        for row in csv.reader(io.StringIO(text)):
            if not row or row == RECORD_HEADER:
                continue
            read.append(Transaction.from_record_row(row, self.decimal))

        if rule_engine is not None:
            rule_engine.apply(read)
        self.transactions.extend(read)
        return self

    # -- interchange format -----------------------------------------------

    def to_interchange_element(self) -> ET.Element:
        """Build the OFX STMTRS element for this statement."""
        element = ET.Element("STMTRS")
        _add(element, "CURDEF", self.currency)

        account = ET.SubElement(element, "BANKACCTFROM")
        _add(account, "BANKID", self.bank_id)
        _add(account, "ACCTID", self.account_number)
        _add(account, "ACCTTYPE", self.account_type.value)

        tran_list = ET.SubElement(element, "BANKTRANLIST")
        _add(tran_list, "DTSTART", to_interchange_datetime(self.from_date))
        _add(tran_list, "DTEND", to_interchange_datetime(self.to_date))
        for tx in self.transactions:
            tran_list.append(tx.to_interchange_element())

        ledger = ET.SubElement(element, "LEDGERBAL")
        _add(ledger, "BALAMT", self.closing_balance)
        _add(ledger, "DTASOF", to_interchange_datetime(self.to_date))

        available = ET.SubElement(element, "AVAILBAL")
        _add(available, "BALAMT", self.closing_available)
        _add(available, "DTASOF", to_interchange_datetime(self.to_date))
        return element
