from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import ConfigDict, Discriminator, EmailStr, Field, Tag, model_validator
from pydantic.alias_generators import to_camel

from tripcover.models.quote import QuoteStatus
from tripcover.schemas.common import (
    CamelModel,
    CountryCode,
    DateString,
    check_date_range,
)
from tripcover.schemas.issuance import PassengerAddressData

# Snapshot passengers
#
# Early in the wizard only age/country is known, once finalized the full
# identity is. Stored JSON always carries the ``kind`` tag.


class MinimalSnapshotPassenger(CamelModel):
    kind: Literal["minimal"] = "minimal"
    country_code: CountryCode
    birth_date: DateString


class FullSnapshotPassenger(CamelModel):
    kind: Literal["full"] = "full"
    country_code: CountryCode
    birth_date: DateString
    document_type: int = 1
    document_number: str = Field(..., min_length=1)
    lastname: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    preferred_surname: Optional[str] = None
    preferred_name: Optional[str] = None
    address_data: PassengerAddressData


def _passenger_kind(value: Any) -> str:
    if isinstance(value, dict):
        if "kind" in value:
            return value["kind"]
        # Untagged input from older clients
        return "full" if "email" in value else "minimal"
    return getattr(value, "kind", "minimal")


SnapshotPassenger = Annotated[
    Union[
        Annotated[MinimalSnapshotPassenger, Tag("minimal")],
        Annotated[FullSnapshotPassenger, Tag("full")],
    ],
    Discriminator(_passenger_kind),
]


class SelectedAddon(CamelModel):
    addon_code: str
    rate_code: str
    category: int


class PassengerAddonSelection(CamelModel):
    passenger_index: int = Field(..., ge=0)
    addons: list[SelectedAddon] = []


class SaveQuoteRequest(CamelModel):
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    begin_date: DateString
    end_date: DateString
    travel_type: int = Field(default=1, ge=1, le=2)

    passengers_count: Optional[int] = Field(None, ge=1, le=16)
    passengers: list[SnapshotPassenger] = Field(..., min_length=1, max_length=16)

    # Checked by the service so a missing selection is a 400, not a 422
    product_code: Optional[str] = None
    rate_code: Optional[str] = None
    product_name: Optional[str] = None
    quoted_total: Optional[Decimal] = Field(None, gt=0)
    quoted_currency: str = "USD"

    exchange_rate: Optional[Decimal] = None
    processing_fee: Optional[Decimal] = None
    selected_addons: list[PassengerAddonSelection] = []
    promotional_code: Optional[str] = None

    @model_validator(mode="after")
    def check_consistency(self) -> "SaveQuoteRequest":
        check_date_range(self.begin_date, self.end_date)
        if self.passengers_count is not None and self.passengers_count != len(self.passengers):
            raise ValueError("passengersCount must match the number of passengers")
        return self


class SaveQuoteResponse(CamelModel):
    id: UUID
    expires_at: datetime


class QuoteResponse(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: UUID
    user_id: UUID
    source_quote_id: Optional[UUID] = None
    origin: str
    destination: str
    begin_date: date
    end_date: date
    travel_type: int
    passengers_count: int
    passengers: list[SnapshotPassenger]
    product_code: Optional[str] = None
    rate_code: Optional[str] = None
    product_name: Optional[str] = None
    quoted_total: Optional[Decimal] = None
    quoted_currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    processing_fee: Optional[Decimal] = None
    selected_addons: list[PassengerAddonSelection] = []
    promotional_code: Optional[str] = None
    status: QuoteStatus
    expires_at: datetime
    created_at: datetime


class QuoteListResponse(CamelModel):
    quotes: list[QuoteResponse]
    total: int
    page: int
    page_size: int
    has_more: bool
