from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from tripcover.models.policy import PolicyStatus
from tripcover.schemas.common import CamelModel, DateString, check_date_range
from tripcover.schemas.issuance import IssueVouchersParams, Voucher
from tripcover.schemas.quote import QuoteResponse


class OrmCamelModel(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class IssuePolicyRequest(IssueVouchersParams):
    """Issuance body. Issuing-point codes are added server side."""

    quote_id: Optional[UUID] = None


class PassengerResponse(OrmCamelModel):
    id: UUID
    country_code: str
    document_type: int
    document_number: str
    birth_date: date
    lastname: str
    name: str
    preferred_surname: Optional[str] = None
    preferred_name: Optional[str] = None
    email: str
    phone: str
    address_country_code: str
    street_name: str
    street_number: str
    postal_code: str
    city: str
    state: str
    complements: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PolicyResponse(OrmCamelModel):
    id: UUID
    quote_id: UUID
    passenger_id: UUID
    user_id: UUID
    voucher_code: str
    voucher_group: str
    policy_code: Optional[str] = None
    booking_code: Optional[str] = None
    ekit_url: Optional[str] = None
    policy_url: Optional[str] = None
    product_code: str
    product_name: Optional[str] = None
    rate_code: str
    begin_date: date
    end_date: date
    issuance_date: Optional[date] = None
    total_amount: Decimal
    currency: str
    exchange_rate: Optional[Decimal] = None
    processing_fee: Optional[Decimal] = None
    promotional_code: Optional[str] = None
    payment_method: str
    payment_brand: str
    payment_installments: int
    payment_reference: str
    payment_currency: str
    payment_total: Decimal
    addons: list[dict[str, Any]] = []
    status: PolicyStatus
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime


class PolicyListResponse(CamelModel):
    policies: list[PolicyResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class IssuePolicyResponse(CamelModel):
    quote: QuoteResponse
    passengers: list[PassengerResponse]
    policies: list[PolicyResponse]
    vouchers: list[Voucher]


class CancelPolicyRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class RectifyPolicyRequest(CamelModel):
    begin_date: DateString
    end_date: DateString

    @model_validator(mode="after")
    def check_dates(self) -> "RectifyPolicyRequest":
        check_date_range(self.begin_date, self.end_date)
        return self
