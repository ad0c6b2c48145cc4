"""Post-processing rules applied to every scraped transaction.

Rules run from highest priority to lowest; rules with equal priority run in
the order they were registered. Catch-all rules conventionally use
``CATCH_ALL_PRIORITY`` so that they see each transaction after every
bank-specific rule has had its turn.
"""

import itertools
from collections.abc import Callable
from dataclasses import dataclass

from .logging_setup import get_logger
from .models import Statement, Transaction, TransactionType
from .normalize import capitalize_words

logger = get_logger("fin_ledger.rules")

CATCH_ALL_PRIORITY = -999

# Attribute set on methods marked with ``transaction_rule``
RULE_PRIORITY_ATTR = "_transaction_rule_priority"

RuleBody = Callable[[Transaction], None]


@dataclass
class Rule:
    """A registered rule and its position in the pipeline."""

    priority: int
    body: RuleBody
    name: str
    index: int = 0


class RuleEngine:
    """An ordered pipeline of transaction rules."""

    def __init__(self):
        self._rules: list[Rule] = []
        self._counter = itertools.count()

    def register(self, priority: int, body: RuleBody, name: str | None = None) -> Rule:
        """Add a rule, keeping the pipeline sorted by priority then registration order."""
        rule = Rule(
            priority=priority,
            body=body,
            name=name or getattr(body, "__qualname__", repr(body)),
            index=next(self._counter),
        )
        self._rules.append(rule)
        self._rules.sort(key=lambda r: (-r.priority, r.index))
        return rule

    def rule(self, priority: int = 0) -> Callable[[RuleBody], RuleBody]:
        """Decorator form of ``register``."""

        def decorator(body: RuleBody) -> RuleBody:
            self.register(priority, body)
            return body

        return decorator

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def apply(self, transactions: list[Transaction]) -> None:
        """Run every rule over ``transactions``, one rule at a time."""
        for rule in self._rules:
            logger.debug("Applying rule %s (priority %d)", rule.name, rule.priority)
            for tx in transactions:
                try:
                    rule.body(tx)
                except Exception:
                    logger.error("Rule %s failed on %s", rule.name, tx)
                    raise

    def apply_all(self, statement: Statement) -> Statement:
        """Run every rule over every transaction of ``statement``."""
        self.apply(statement.transactions)
        return statement


def transaction_rule(priority: int = 0):
    """Mark a StatementSource method as a transaction rule.

    The method is called with each transaction. Sources collect their marked
    methods, base classes first and then in definition order, into the
    RuleEngine they apply after parsing.
    """

    def decorator(method):
        setattr(method, RULE_PRIORITY_ATTR, priority)
        return method

    return decorator


def infer_credit_debit(tx: Transaction) -> None:
    """Turn OTHER into CREDIT or DEBIT by the sign of the amount.

    A zero amount stays OTHER.
    """
    if tx.type != TransactionType.OTHER:
        return
    if tx.real_amount > 0:
        tx.type = TransactionType.CREDIT
    elif tx.real_amount < 0:
        tx.type = TransactionType.DEBIT


def title_case_description(tx: Transaction) -> None:
    """Replace an uncustomised, usually all-caps description with title case."""
    if tx.description == tx.raw_description:
        tx.description = capitalize_words(tx.raw_description)
