"""Raw field extraction for BPI statements."""

import re

# Pages with these are terms and conditions, not transactions
BOILERPLATE_INDICATORS = [
    r"Condi[cç][oõ]es\s*gerais",
    r"Informa[cç][aã]o\s*ao\s*cliente",
]

TRANSACTION_INDICATORS = [
    r"Data\s*Mov\.?\s+Data\s*Valor",
    r"Movimentos\s*da\s*conta",
]

DATE = r"\d{2}[-/.]\d{2}[-/.]\d{4}"
AMOUNT = r"-?[\d.]*\d,\d{2}"

# Pattern: date [value-date] description amount balance
ROW_PATTERN = re.compile(
    rf"^(?P<date>{DATE})\s+(?:(?P<value_date>{DATE})\s+)?"
    rf"(?P<description>.+?)\s+(?P<amount>{AMOUNT})\s+(?P<balance>{AMOUNT})\s*$"
)

AVAILABLE_BALANCE = r"Saldo\s*Dispon[ií]vel"
ACCOUNTING_BALANCE = r"Saldo\s*Contabil[ií]stico"

RawRow = tuple[str, str, str, str, str]


def is_transaction_page(text: str) -> bool:
    """Determine if a page's text holds the transactions table."""
    for pattern in BOILERPLATE_INDICATORS:
        if re.search(pattern, text, re.IGNORECASE):
            return False

    for pattern in TRANSACTION_INDICATORS:
        if re.search(pattern, text, re.IGNORECASE):
            return True

    # Untitled continuation pages still carry transaction rows
    return any(ROW_PATTERN.match(line.strip()) for line in text.splitlines())


def extract_raw_rows(text: str) -> list[RawRow]:
    """Extract (date, value_date, description, amount, balance) tuples.

    The value date is "" when the bank left its column empty. Lines that
    do not look like a transaction (headers, totals, page footers) are
    skipped.
    """
    rows: list[RawRow] = []
    for line in text.splitlines():
        match = ROW_PATTERN.match(line.strip())
        if not match:
            continue
        description = match.group("description").strip()
        if not description:
            continue
        rows.append(
            (
                match.group("date"),
                match.group("value_date") or "",
                description,
                match.group("amount"),
                match.group("balance"),
            )
        )
    return rows


def extract_balance(text: str, label: str) -> str | None:
    """Find the amount that follows ``label``, without thousands separators.

    "Saldo Disponível: 1.751,31 EUR" gives "1751,31".
    """
    match = re.search(rf"{label}\s*:?\s*({AMOUNT})", text, re.IGNORECASE)
    return match.group(1).replace(".", "") if match else None
