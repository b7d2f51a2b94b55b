from typing import Literal, Optional

from pydantic import Field, model_validator

from tripcover.schemas.common import (
    CamelModel,
    CountryCode,
    DateString,
    IataCode,
    check_date_range,
)


class PointOfSale(CamelModel):
    """Issuing-point codes, always injected from configuration."""

    country_code: CountryCode
    agency_code: str = Field(..., min_length=1, max_length=5)
    branch_code: int = Field(..., ge=0, le=999)


class QuotePassenger(CamelModel):
    country_code: CountryCode
    birth_date: DateString


class QuoteItinerary(CamelModel):
    code: Literal["AIRPORT"] = "AIRPORT"
    origin: IataCode
    destination: IataCode


class QuotePriceModifiers(CamelModel):
    promotional_code: Optional[str] = None
    markup: Optional[float] = None
    # Provider spelling
    comission_discount: Optional[float] = None


# Quote products


class QuoteProductParams(CamelModel):
    begin_date: DateString
    end_date: DateString
    itinerary: QuoteItinerary
    passengers: list[QuotePassenger] = Field(..., min_length=1, max_length=16)

    travel_type: Optional[int] = Field(None, ge=1, le=2)  # 1=Daily, 2=MultiTrip
    quote_annual: Optional[bool] = None
    multi_trip_modality_filter: Optional[list[str]] = None
    payment_method: Optional[Literal["CreditCard", "CheckingAccount"]] = None
    language: Optional[Literal["es", "pt", "en"]] = None
    price_modifiers: Optional[QuotePriceModifiers] = None

    @model_validator(mode="after")
    def check_dates(self) -> "QuoteProductParams":
        check_date_range(self.begin_date, self.end_date)
        return self


class QuoteProductRequest(QuoteProductParams, PointOfSale):
    pass


class QuotedProductAmount(CamelModel):
    total_original: float
    total: float
    total_no_taxes_included: float
    subtotal_assistance: float
    subtotal_insurance: float


class PromotionalOffer(CamelModel):
    code: str
    description: str
    percentage: str


class QuotedProduct(CamelModel):
    product_code: str
    rate_code: str
    name: str
    description: str
    rate_caption: str
    passengers_url: Optional[str] = Field(None, alias="passengersURL")
    currency: str
    modality: str
    modality_code: str
    allow_markup: bool
    promotional_offer: Optional[PromotionalOffer] = None
    amount: QuotedProductAmount


class QuoteProductResponseData(CamelModel):
    destination_area: str
    exchange_rate: float
    processing_fee: float
    quoted_products: list[QuotedProduct]


# Quote addons


class QuoteAddonsParams(CamelModel):
    begin_date: DateString
    end_date: DateString
    product_code: str = Field(..., min_length=1)
    rate_code: str = Field(..., min_length=1)
    passengers: list[QuotePassenger] = Field(..., min_length=1, max_length=16)
    language: Optional[Literal["es", "pt", "en"]] = None

    @model_validator(mode="after")
    def check_dates(self) -> "QuoteAddonsParams":
        check_date_range(self.begin_date, self.end_date)
        return self


class QuoteAddonsRequest(QuoteAddonsParams, PointOfSale):
    pass


class AllowedPassenger(CamelModel):
    birth_date: DateString


class AddonCategoryAmount(CamelModel):
    total_original: float
    total: float
    subtotal_assistance: float
    subtotal_insurance: float


class AddonCategory(CamelModel):
    rate_code: str
    rate_category: int  # Coverage amount, e.g. 50000 = USD 50,000
    currency: str
    allowed_passengers: list[AllowedPassenger]
    amount: AddonCategoryAmount


class QuotedAddon(CamelModel):
    product_code: str
    name: str
    description: str
    categories: list[AddonCategory]


class QuoteAddonsResponseData(CamelModel):
    quoted_addons: list[QuotedAddon]
