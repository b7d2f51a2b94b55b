"""In-process stand-in for the Assistcard gateway (ASSISTCARD_USE_MOCK).

Prices are deterministic so the frontend can be developed against them;
voucher codes, groups and payment references are random.
"""

import logging
import math
import random
import secrets
import string
import uuid
from datetime import UTC, datetime
from typing import Any

from tripcover.schemas.common import format_provider_date, parse_provider_date
from tripcover.schemas.issuance import (
    CancelVoucherParams,
    CancelVoucherResponseData,
    IssueVouchersParams,
    IssueVouchersResponseData,
    RectifyValidityParams,
    RectifyValidityResponseData,
)
from tripcover.schemas.products import (
    QuoteAddonsParams,
    QuoteAddonsResponseData,
    QuoteProductParams,
    QuoteProductResponseData,
)
from tripcover.services.assistcard_client import AssistcardClient
from tripcover.services.token_manager import TokenManager

logger = logging.getLogger(__name__)

MOCK_TOKEN = "mock-assistcard-token"
BASE_PRICE_PER_DAY = 25
PROMO_DISCOUNT = 0.15
EXCHANGE_RATE = 1050.5
PROCESSING_FEE = 2.5

# (rate code, price multiplier, caption, allow markup)
PRODUCT_TIERS = [
    ("150", 1.0, "Medical USD 150,000 | Baggage USD 1,200 | 24/7 assistance", False),
    ("250", 1.5, "Medical USD 250,000 | Baggage USD 2,000 | 24/7 assistance", False),
    ("350", 2.0, "Medical USD 350,000 | Baggage USD 3,000 | 24/7 premium assistance", True),
]

PRODUCT_DESCRIPTIONS = {
    "150": "Standard coverage for international travel",
    "250": "Premium coverage with extended protection",
    "350": "Full coverage with maximum protection",
}


def _trip_days(begin_date: str, end_date: str) -> int:
    return (parse_provider_date(end_date) - parse_provider_date(begin_date)).days + 1


def _age_at(birth_date: str, on: str) -> int:
    days = (parse_provider_date(on) - parse_provider_date(birth_date)).days
    return math.floor(days / 365.25)


def _random_code() -> int:
    return random.randint(100_000_000, 999_999_999)


class StaticTokenManager(TokenManager):
    async def get_valid_token(self) -> str:
        logger.debug("Using mock Assistcard token")
        return MOCK_TOKEN

    def has_valid_token(self) -> bool:
        return True

    def clear(self) -> None:
        pass


class MockAssistcardClient(AssistcardClient):
    async def quote_products(
        self, params: QuoteProductParams | dict[str, Any], token: str
    ) -> QuoteProductResponseData:
        request = QuoteProductParams.model_validate(params)
        days = _trip_days(request.begin_date, request.end_date)
        passenger_count = len(request.passengers)
        promo_code = request.price_modifiers.promotional_code if request.price_modifiers else None

        logger.info(
            f"Using MOCK Assistcard Products API: "
            f"{request.itinerary.origin}->{request.itinerary.destination} "
            f"days={days} passengers={passenger_count}"
        )

        products = []
        for index, (rate_code, multiplier, caption, allow_markup) in enumerate(PRODUCT_TIERS):
            original = days * passenger_count * BASE_PRICE_PER_DAY * multiplier
            # Promotion only ever applies to the entry tier
            discount = PROMO_DISCOUNT if promo_code and index == 0 else 0
            total = original * (1 - discount)
            products.append(
                {
                    "productCode": "AC",
                    "rateCode": rate_code,
                    "name": f"AC {rate_code}",
                    "description": PRODUCT_DESCRIPTIONS[rate_code],
                    "rateCaption": caption,
                    "passengersURL": f"https://www.assistcard.com/ar/quote/{uuid.uuid4()}",
                    "currency": "USD",
                    "modality": "Daily",
                    "modalityCode": "D",
                    "allowMarkup": allow_markup,
                    "promotionalOffer": (
                        {
                            "code": promo_code,
                            "description": "Promotional discount",
                            "percentage": "15%",
                        }
                        if discount
                        else None
                    ),
                    "amount": {
                        "totalOriginal": original,
                        "total": total,
                        "totalNoTaxesIncluded": total,
                        "subtotalAssistance": total * 0.7,
                        "subtotalInsurance": total * 0.3,
                    },
                }
            )

        return QuoteProductResponseData.model_validate(
            {
                "destinationArea": "USA" if request.itinerary.destination == "MIA" else "International",
                "exchangeRate": EXCHANGE_RATE,
                "processingFee": PROCESSING_FEE,
                "quotedProducts": products,
            }
        )

    async def quote_addons(
        self, params: QuoteAddonsParams | dict[str, Any], token: str
    ) -> QuoteAddonsResponseData:
        request = QuoteAddonsParams.model_validate(params)
        days = _trip_days(request.begin_date, request.end_date)
        everyone = [{"birthDate": p.birth_date} for p in request.passengers]
        # Extreme sports are not sold to travellers aged 70 or more
        under_70 = [
            {"birthDate": p.birth_date}
            for p in request.passengers
            if _age_at(p.birth_date, request.begin_date) < 70
        ]

        logger.info(
            f"Using MOCK Assistcard Addons API: product={request.product_code} "
            f"rate={request.rate_code} days={days}"
        )

        def category(rate_code, rate_category, allowed, total, assistance, insurance):
            return {
                "rateCode": rate_code,
                "rateCategory": rate_category,
                "currency": "USD",
                "allowedPassengers": allowed,
                "amount": {
                    "totalOriginal": days * total,
                    "total": days * total,
                    "subtotalAssistance": days * assistance,
                    "subtotalInsurance": days * insurance,
                },
            }

        addons = [
            {
                "productCode": "COVID",
                "name": "COVID-19 coverage",
                "description": "Additional medical coverage for COVID-19 related expenses",
                "categories": [
                    category("COVID_BASIC", 50000, everyone, 5, 4, 1),
                    category("COVID_PREMIUM", 100000, everyone, 8, 6.5, 1.5),
                ],
            },
            {
                "productCode": "SPORTS",
                "name": "Extreme sports coverage",
                "description": "High-risk sports activities (not available from age 70)",
                "categories": [category("SPORTS_STANDARD", 25000, under_70, 3, 2.5, 0.5)],
            },
            {
                "productCode": "CANCEL",
                "name": "Trip cancellation",
                "description": "Refund when a trip is cancelled for a justified reason",
                "categories": [category("CANCEL_FULL", 5000, everyone, 6, 5, 1)],
            },
        ]
        return QuoteAddonsResponseData.model_validate({"quotedAddons": addons})

    async def issue_vouchers(
        self, params: IssueVouchersParams | dict[str, Any], token: str
    ) -> IssueVouchersResponseData:
        request = IssueVouchersParams.model_validate(params)
        payment = request.payment_details
        promo_code = request.price_modifiers.promotional_code if request.price_modifiers else None

        logger.info(
            f"Using MOCK Assistcard Issue Vouchers API: product={request.product_code} "
            f"rate={request.rate_code} passengers={len(request.passengers)} amount={payment.amount}"
        )

        base_price = payment.amount / len(request.passengers)
        vouchers = []
        for index, passenger in enumerate(request.passengers):
            code = _random_code()
            addon_amounts = [
                {
                    "code": addon.code,
                    "rateCode": addon.rate_code,
                    "category": addon.category,
                    "totalOriginal": addon.category / 10000,
                    "total": addon.category / 10000,
                    "subtotalAssistance": addon.category / 10000 * 0.8,
                    "subtotalInsurance": addon.category / 10000 * 0.2,
                    "financialTaxes": 0,
                }
                for addon in passenger.addons or []
            ]
            total = base_price + sum(a["total"] for a in addon_amounts)
            vouchers.append(
                {
                    "code": code,
                    "bookingCode": passenger.booking_code or f"MOCK-{index + 1}",
                    "documentNumber": passenger.document_number,
                    "lastName": passenger.lastname,
                    "name": passenger.name,
                    "ekitURL": f"https://documents.assistcard.com/voucher/{code}",
                    "productCode": request.product_code,
                    "productName": f"{request.product_code} {request.rate_code}",
                    "effectiveDateStart": request.begin_date,
                    "effectiveDateEnd": request.end_date,
                    "amountRate": {
                        "totalOriginal": total,
                        "total": total,
                        "subtotalAssistance": total * 0.7,
                        "subtotalInsurance": total * 0.3,
                        "financialTaxes": 0,
                        "promotionalCode": promo_code,
                        "addons": addon_amounts,
                    },
                }
            )

        total_paid = sum(v["amountRate"]["total"] for v in vouchers)
        reference = "TXN_" + "".join(
            secrets.choice(string.ascii_uppercase + string.digits) for _ in range(13)
        )
        data = IssueVouchersResponseData.model_validate(
            {
                "countryIdentifier": 54,
                "voucherGroup": _random_code(),
                "issuanceDate": format_provider_date(datetime.now(UTC).date()),
                "exchangeRate": EXCHANGE_RATE,
                "vouchers": vouchers,
                "paymentDetails": {
                    "method": "CreditCard",
                    "brand": payment.brand,
                    "installments": payment.installments,
                    "referenceNumber": reference,
                    "currency": payment.currency or "ARS",
                    "totalPaid": total_paid * EXCHANGE_RATE,
                    "amountRate": {
                        "totalOriginal": total_paid,
                        "total": total_paid,
                        "processingFee": PROCESSING_FEE,
                        "financialTaxes": 0,
                        "financialInterest": 0,
                        "taxesIncluded": total_paid,
                        "noTaxesIncluded": total_paid,
                        "assistance": total_paid * 0.7,
                        "insurance": total_paid * 0.3,
                    },
                },
            }
        )
        data.trace_id = f"mock-{uuid.uuid4()}"

        logger.info(
            f"MOCK Assistcard issued {len(data.vouchers)} vouchers: "
            f"voucher_group={data.voucher_group}"
        )
        return data

    async def cancel_voucher(
        self, params: CancelVoucherParams | dict[str, Any], token: str
    ) -> CancelVoucherResponseData:
        request = CancelVoucherParams.model_validate(params)
        logger.info(f"Using MOCK Assistcard Cancel Voucher API: voucher={request.voucher_code}")
        return CancelVoucherResponseData(
            voucher_code=request.voucher_code,
            cancellation_date=format_provider_date(datetime.now(UTC).date()),
        )

    async def rectify_validity(
        self, params: RectifyValidityParams | dict[str, Any], token: str
    ) -> RectifyValidityResponseData:
        request = RectifyValidityParams.model_validate(params)
        logger.info(
            f"Using MOCK Assistcard Rectify Validity API: voucher={request.voucher_code} "
            f"{request.begin_date}-{request.end_date}"
        )
        return RectifyValidityResponseData(
            voucher_code=request.voucher_code,
            effective_date_start=request.begin_date,
            effective_date_end=request.end_date,
        )
