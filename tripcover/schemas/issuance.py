from typing import Optional

from pydantic import EmailStr, Field, model_validator

from tripcover.schemas.common import (
    CamelModel,
    CountryCode,
    DateString,
    TokenizedValue,
    check_date_range,
)
from tripcover.schemas.products import PointOfSale, QuoteItinerary, QuotePriceModifiers

# Issue vouchers - request


class PassengerAddressData(CamelModel):
    country_code: CountryCode
    street_name: str = Field(..., min_length=1)
    street_number: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    complements: Optional[str] = None  # Apartment, floor, etc.


class PassengerAddon(CamelModel):
    code: str
    rate_code: str
    category: int = Field(..., gt=0)


class IssuePassenger(CamelModel):
    country_code: CountryCode
    document_type: int = Field(default=1, gt=0)  # 1 = Passport
    document_number: str = Field(..., min_length=1)
    birth_date: DateString
    lastname: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)  # "{countryCode} {areaCode} {number}"

    # Brazil social names
    preferred_surname: Optional[str] = None
    preferred_name: Optional[str] = None

    booking_code: Optional[str] = None
    address_data: PassengerAddressData
    addons: Optional[list[PassengerAddon]] = None


class PaymentDetails(CamelModel):
    currency: Optional[str] = None
    amount: float = Field(..., gt=0)
    installments: int = Field(default=1, gt=0)
    card_number: TokenizedValue
    card_holder: str = Field(..., min_length=1)
    expiration_date: str = Field(..., pattern=r"^\d{2}/\d{2}$")  # MM/YY
    cvv: TokenizedValue
    document_number: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None


class IssueVouchersParams(CamelModel):
    counter_code: str = Field(..., min_length=1)  # Selling agent
    product_code: str = Field(..., min_length=1)
    rate_code: str = Field(..., min_length=1)
    begin_date: DateString
    end_date: DateString
    itinerary: QuoteItinerary
    passengers: list[IssuePassenger] = Field(..., min_length=1, max_length=16)
    price_modifiers: Optional[QuotePriceModifiers] = None
    payment_details: PaymentDetails

    @model_validator(mode="after")
    def check_dates(self) -> "IssueVouchersParams":
        check_date_range(self.begin_date, self.end_date)
        return self


class IssueVouchersRequest(IssueVouchersParams, PointOfSale):
    pass


# Issue vouchers - response


class VoucherAddonAmount(CamelModel):
    code: str
    rate_code: str
    category: int
    total_original: float
    total: float
    subtotal_assistance: float
    subtotal_insurance: float
    financial_taxes: float
    promotional_code: Optional[str] = None


class VoucherAmountRate(CamelModel):
    total_original: float
    total: float
    subtotal_assistance: float
    subtotal_insurance: float
    financial_taxes: float
    promotional_code: Optional[str] = None
    addons: list[VoucherAddonAmount] = []


class Voucher(CamelModel):
    code: int
    policy_code: Optional[str] = None  # Brazil/Spain only
    booking_code: str
    document_number: str
    last_name: str
    name: str
    ekit_url: str = Field(..., alias="ekitURL")
    policy_url: Optional[str] = Field(None, alias="policyURL")
    product_code: str
    product_name: str
    effective_date_start: DateString
    effective_date_end: DateString
    amount_rate: VoucherAmountRate


class PaymentAmountRate(CamelModel):
    total_original: float
    total: float
    processing_fee: float
    financial_taxes: float
    financial_interest: float
    taxes_included: float
    no_taxes_included: float
    assistance: float
    insurance: float


class PaymentConfirmation(CamelModel):
    method: str
    brand: str
    installments: int
    reference_number: str  # Gateway transaction id
    currency: str
    total_paid: float
    amount_rate: PaymentAmountRate


class IssueVouchersResponseData(CamelModel):
    country_identifier: int
    voucher_group: int
    issuance_date: DateString
    exchange_rate: float
    vouchers: list[Voucher]
    payment_details: PaymentConfirmation

    # Copied from the envelope by the client, never part of the payload
    trace_id: Optional[str] = Field(default=None, exclude=True)


# Voucher maintenance


class CancelVoucherParams(CamelModel):
    voucher_code: int
    reason: Optional[str] = None


class CancelVoucherRequest(CancelVoucherParams, PointOfSale):
    pass


class CancelVoucherResponseData(CamelModel):
    voucher_code: int
    cancellation_date: Optional[DateString] = None


class RectifyValidityParams(CamelModel):
    voucher_code: int
    begin_date: DateString
    end_date: DateString

    @model_validator(mode="after")
    def check_dates(self) -> "RectifyValidityParams":
        check_date_range(self.begin_date, self.end_date)
        return self


class RectifyValidityRequest(RectifyValidityParams, PointOfSale):
    pass


class RectifyValidityResponseData(CamelModel):
    voucher_code: int
    effective_date_start: DateString
    effective_date_end: DateString
