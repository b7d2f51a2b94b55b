from datetime import date, datetime
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Provider contract formats
DateString = Annotated[
    str, Field(pattern=r"^\d{4}/\d{2}/\d{2}$", description="Date in YYYY/MM/DD format")
]
CountryCode = Annotated[
    str, Field(pattern=r"^[A-Z]{2}$", description="ISO 3166-1 alpha-2 country code")
]
IataCode = Annotated[str, Field(pattern=r"^[A-Z]{3}$", description="IATA airport code")]
TokenizedValue = Annotated[
    str,
    Field(
        pattern=r"^\{\{\{.+\}\}\}$",
        description="Tokenized value wrapped in triple braces: {{{token}}}",
    ),
]


class CamelModel(BaseModel):
    """Base for every model that travels as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


T = TypeVar("T")


class ProviderEnvelope(CamelModel, Generic[T]):
    """Assistcard wraps every payload in the same envelope.

    Problem-details style errors (``type``/``title``/``status``) arrive without
    ``isSuccess``, which is why it defaults to False.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    trace_id: str = "unknown"
    is_success: bool = False
    data: Optional[T] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    type: Optional[str] = None
    title: Optional[str] = None
    status: Optional[int] = None


def parse_provider_date(value: str) -> date:
    """Convert ``YYYY/MM/DD`` into a date."""
    return datetime.strptime(value, "%Y/%m/%d").date()


def format_provider_date(value: date) -> str:
    return value.strftime("%Y/%m/%d")


def check_date_range(begin_date: str, end_date: str) -> None:
    if parse_provider_date(end_date) < parse_provider_date(begin_date):
        raise ValueError("endDate must not be before beginDate")
