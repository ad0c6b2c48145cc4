"""Per-source configuration."""

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import ValidationError
from .models import AccountType
from .normalize import DECIMAL_SEPARATORS


class SourceConfig(BaseModel):
    """Directives an extraction source needs to build statements.

    One immutable instance is handed to a source at construction; every
    Statement and Transaction the source creates takes its currency,
    separator and account details from it.
    """

    model_config = ConfigDict(frozen=True)

    account_number: str
    currency: str = "EUR"
    decimal: str = "."
    account_type: AccountType = AccountType.CHECKING
    bank_id: str | None = None
    dayfirst: bool = False
    strict_amounts: bool = False

    @field_validator("decimal")
    @classmethod
    def _check_decimal(cls, value: str) -> str:
        if value not in DECIMAL_SEPARATORS:
            raise ValidationError(f"Unsupported decimal separator: {value!r}")
        return value
