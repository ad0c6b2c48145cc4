"""Money and date normalization helpers.

Amounts scraped from bank sites are kept as text (so the exact value can be
written back out) and converted to ``Decimal`` on demand. Dates are held as
``datetime`` and rendered through two fixed encodings: the compact
interchange form used in OFX documents and the spreadsheet-friendly record
form used in CSV files.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import pandas as pd

from .errors import ValidationError

INTERCHANGE_FORMAT = "%Y%m%d%H%M%S"
RECORD_FORMAT = "%Y-%m-%d %H:%M:%S"

# Tried before the general parser; these are the formats we write ourselves
KNOWN_FORMATS = (INTERCHANGE_FORMAT, RECORD_FORMAT, "%Y%m%d")

DECIMAL_SEPARATORS = (".", ",")

_WHITESPACE = re.compile(r"\s+")


def parse_amount(text, decimal: str = ".", strict: bool = False) -> Decimal:
    """Convert a locale-formatted amount into a Decimal.

    Args:
        text: The amount as scraped, e.g. "1.000.000,32" or "-2,40"
        decimal: The decimal separator used by ``text`` ("." or ",")
        strict: Raise instead of coercing unparsable text to zero

    Returns:
        The numeric value of the amount

    Raises:
        ValidationError: If ``decimal`` is unsupported, or if ``strict`` is
            set and ``text`` is empty or not a number
    """
    if decimal not in DECIMAL_SEPARATORS:
        raise ValidationError(f"Unsupported decimal separator: {decimal!r}")

    if isinstance(text, Decimal):
        return text
    if isinstance(text, (int, float)):
        return Decimal(str(text))

    cleaned = _WHITESPACE.sub("", text or "")
    if decimal == ",":
        # "1.000.030,99" -> "1000030.99"
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        value = None

    if value is None or not value.is_finite():
        if strict:
            raise ValidationError(f"Not a valid amount: {text!r}")
        return Decimal("0")
    return value


def to_interchange_datetime(value: datetime | None) -> str:
    """Render a datetime as YYYYMMDDHHMMSS, or "" when absent."""
    return "" if value is None else value.strftime(INTERCHANGE_FORMAT)


def to_record_datetime(value: datetime | None) -> str:
    """Render a datetime as "YYYY-MM-DD HH:MM:SS", or "" when absent."""
    return "" if value is None else value.strftime(RECORD_FORMAT)


def parse_flexible_datetime(raw, dayfirst: bool = False) -> datetime | None:
    """Turn a scraped date value into a datetime.

    Structured values are returned as-is (a ``date`` becomes midnight of
    that day) and blank text means "no date". Text in one of the formats
    this package writes is read exactly; anything else goes through the
    pandas date parser.

    Results are always naive: a UTC offset is dropped and the printed local
    time kept, so dates from different scrapes stay comparable.

    Args:
        raw: A datetime, date, string or None
        dayfirst: Prefer DD/MM over MM/DD for ambiguous text

    Returns:
        The parsed datetime, or None for an absent date

    Raises:
        ValidationError: If the text cannot be read as a date. Malformed
            scrapes such as "0080729000000" end up here rather than
            escaping as an arbitrary exception.
    """
    if raw is None:
        return None
    if isinstance(raw, pd.Timestamp):
        return _naive(raw).to_pydatetime()
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is None else raw.replace(tzinfo=None)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)

    text = str(raw).strip()
    if not text:
        return None

    for fmt in KNOWN_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        # strptime accepts unpadded fields, e.g. "0080729000000" as year 80
        if parsed.strftime(fmt) == text:
            return parsed

    try:
        parsed = pd.to_datetime(text, dayfirst=dayfirst)
    except (ValueError, OverflowError, TypeError) as e:
        raise ValidationError(f"Could not parse date: {text!r}") from e

    if pd.isna(parsed):
        raise ValidationError(f"Could not parse date: {text!r}")
    return _naive(parsed).to_pydatetime()


def _naive(stamp: pd.Timestamp) -> pd.Timestamp:
    # Keep the wall-clock time the bank printed and drop the offset
    return stamp if stamp.tzinfo is None else stamp.tz_localize(None)


def capitalize_words(text: str | None) -> str:
    """Lowercase ``text`` and capitalize the first letter of each word."""
    if not text:
        return ""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text.lower())
