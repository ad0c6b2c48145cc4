"""Shared fixtures: five consecutive transactions, newest first."""

import pytest

from fin_ledger import CATCH_ALL_PRIORITY, RuleEngine, Statement, Transaction, TransactionType
from fin_ledger.rules import infer_credit_debit


def make_transaction(date, raw_description, amount, new_balance, value_date="20080731145906"):
    return Transaction(
        date=date,
        value_date=value_date,
        raw_description=raw_description,
        amount=amount,
        new_balance=new_balance,
        decimal=",",
    )


@pytest.fixture
def transactions() -> list[Transaction]:
    return [
        make_transaction("20080730000000", "1 Stamp duty 001", "-2,40", "1.087,43"),
        make_transaction("20080729000000", "2 Interest payment 001", "-59,94", "1.089,83"),
        make_transaction("20080728000000", "3 Loan payment 001", "-256,13", "1.149,77"),
        make_transaction("20080727000000", "4 Transfer to bank 2", "-1.000,00", "1.405,90"),
        make_transaction("20080726000000", "5 Internet payment 838", "-32,07", "2.405,90"),
    ]


@pytest.fixture
def make_statement(transactions):
    """Build a statement from 1-based positions in ``transactions``.

    Each statement gets its own copies so tests cannot leak state between
    statements through shared Transaction objects.
    """

    def _make(*positions: int) -> Statement:
        return Statement(
            account_number="1234567",
            decimal=",",
            transactions=[transactions[p - 1].model_copy() for p in positions],
        )

    return _make


@pytest.fixture
def typing_rules() -> RuleEngine:
    """Rules that type the fixture transactions the way a source would."""
    engine = RuleEngine()

    def interest(tx):
        if "Interest" in tx.raw_description:
            tx.type = TransactionType.INT

    engine.register(0, interest)
    engine.register(CATCH_ALL_PRIORITY, infer_credit_debit)
    return engine


@pytest.fixture
def make_typed_statement(make_statement, typing_rules):
    """Like ``make_statement``, with ``typing_rules`` already applied."""

    def _make(*positions: int) -> Statement:
        return typing_rules.apply_all(make_statement(*positions))

    return _make
