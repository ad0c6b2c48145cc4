"""Exception types raised by fin-ledger."""

from datetime import datetime


class LedgerError(Exception):
    """Base class for all fin-ledger errors."""


class FormatError(LedgerError):
    """A serialized record could not be read (e.g. wrong number of fields)."""


class ValidationError(LedgerError):
    """A value is outside its allowed range or could not be parsed.

    Not a ``ValueError``, so when raised from a model validator it reaches
    the caller as-is instead of inside a pydantic error.
    """


class UploadError(LedgerError):
    """The upload sink rejected or failed to accept a document."""


class MergeConflictError(LedgerError):
    """Two statements overlap in a way that is not a contiguous extension.

    Attributes:
        left_range: (from_date, to_date) of the statement being merged into
        right_range: (from_date, to_date) of the statement being merged in
        offending: The first transaction that broke contiguity, if known
    """

    def __init__(
        self,
        message: str,
        left_range: tuple[datetime | None, datetime | None] = (None, None),
        right_range: tuple[datetime | None, datetime | None] = (None, None),
        offending=None,
    ):
        super().__init__(message)
        self.left_range = left_range
        self.right_range = right_range
        self.offending = offending
