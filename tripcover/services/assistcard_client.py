import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from tripcover.config import Settings, get_settings
from tripcover.errors import (
    AssistcardApiError,
    AssistcardNetworkError,
    InternalServerError,
    IssuanceOutcomeUnknownError,
)
from tripcover.schemas.common import ProviderEnvelope
from tripcover.schemas.issuance import (
    CancelVoucherParams,
    CancelVoucherRequest,
    CancelVoucherResponseData,
    IssueVouchersParams,
    IssueVouchersRequest,
    IssueVouchersResponseData,
    RectifyValidityParams,
    RectifyValidityRequest,
    RectifyValidityResponseData,
)
from tripcover.schemas.products import (
    PointOfSale,
    QuoteAddonsParams,
    QuoteAddonsRequest,
    QuoteAddonsResponseData,
    QuoteProductParams,
    QuoteProductRequest,
    QuoteProductResponseData,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

QUOTE_PRODUCTS_PATH = "/api/v1/Quote/product"
QUOTE_ADDONS_PATH = "/api/v1/Quote/addons"
ISSUE_VOUCHERS_PATH = "/api/v1/Issuance/credit-card/vouchers"
CANCEL_VOUCHER_PATH = "/api/v1/Voucher/cancelVoucher"
RECTIFY_VALIDITY_PATH = "/api/v1/Voucher/rectifyValidity"

# Provider status -> status we answer with. Credential and permission
# failures are ours, not the caller's.
PROVIDER_STATUS_MAP = {
    400: 400,
    401: 502,
    403: 502,
    404: 404,
    422: 400,
    429: 503,
    500: 502,
    502: 502,
    503: 502,
    504: 502,
}


def map_provider_status(provider_status: Optional[int]) -> int:
    if not provider_status:
        return 502
    return PROVIDER_STATUS_MAP.get(provider_status, 502)


def create_api_error(envelope: ProviderEnvelope, http_status: int) -> AssistcardApiError:
    """Translate a provider error envelope into an AssistcardApiError."""
    provider_status = envelope.status
    if provider_status is None and http_status >= 400:
        provider_status = http_status

    message = envelope.error_message or envelope.title or "Unknown Assistcard API error"
    return AssistcardApiError(
        message,
        trace_id=envelope.trace_id,
        error_code=envelope.error_code,
        status_code=map_provider_status(provider_status),
    )


def _as_data(params: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(params, BaseModel):
        return params.model_dump()
    return dict(params)


class AssistcardClient(ABC):
    """Gateway to the Assistcard quoting, issuance and voucher APIs.

    Every method validates the complete request before doing anything else,
    so a malformed request never reaches the provider.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @abstractmethod
    async def quote_products(
        self, params: QuoteProductParams | dict[str, Any], token: str
    ) -> QuoteProductResponseData:
        ...

    @abstractmethod
    async def quote_addons(
        self, params: QuoteAddonsParams | dict[str, Any], token: str
    ) -> QuoteAddonsResponseData:
        ...

    @abstractmethod
    async def issue_vouchers(
        self, params: IssueVouchersParams | dict[str, Any], token: str
    ) -> IssueVouchersResponseData:
        """Charge the card and issue one voucher per passenger. Never retried."""

    @abstractmethod
    async def cancel_voucher(
        self, params: CancelVoucherParams | dict[str, Any], token: str
    ) -> CancelVoucherResponseData:
        ...

    @abstractmethod
    async def rectify_validity(
        self, params: RectifyValidityParams | dict[str, Any], token: str
    ) -> RectifyValidityResponseData:
        ...


class AssistcardHttpClient(AssistcardClient):
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings)
        self.base_url = self.settings.assistcard_api_url.rstrip("/")
        self._transport = transport

    def point_of_sale(self) -> PointOfSale:
        """Issuing-point codes from configuration.

        Raises:
            InternalServerError: If the codes are missing or malformed
        """
        try:
            return PointOfSale(
                country_code=self.settings.assistcard_country_code,
                agency_code=self.settings.assistcard_agency_code,
                branch_code=self.settings.assistcard_branch_code,
            )
        except ValidationError as e:
            logger.error(f"Assistcard issuing-point configuration is invalid: {e}")
            raise InternalServerError(
                "Assistcard issuing point is not configured "
                "(ASSISTCARD_COUNTRY_CODE, ASSISTCARD_AGENCY_CODE, ASSISTCARD_BRANCH_CODE)"
            ) from e

    def build_request(self, request_model: type[ModelT], params: BaseModel | dict[str, Any]) -> ModelT:
        """Merge the configured point of sale into params and validate the result."""
        if not self.base_url:
            raise InternalServerError("ASSISTCARD_API_URL not configured")
        data = _as_data(params)
        data.update(self.point_of_sale().model_dump())
        return request_model.model_validate(data)

    async def quote_products(
        self, params: QuoteProductParams | dict[str, Any], token: str
    ) -> QuoteProductResponseData:
        request = self.build_request(QuoteProductRequest, params)
        logger.info(
            f"Calling Assistcard Quote Products API: "
            f"{request.itinerary.origin}->{request.itinerary.destination} "
            f"{request.begin_date}-{request.end_date} passengers={len(request.passengers)}"
        )
        data, trace_id = await self._post(
            QUOTE_PRODUCTS_PATH, request, QuoteProductResponseData, token
        )
        logger.info(
            f"Assistcard returned {len(data.quoted_products)} products (trace_id={trace_id})"
        )
        return data

    async def quote_addons(
        self, params: QuoteAddonsParams | dict[str, Any], token: str
    ) -> QuoteAddonsResponseData:
        request = self.build_request(QuoteAddonsRequest, params)
        logger.info(
            f"Calling Assistcard Quote Addons API: product={request.product_code} "
            f"rate={request.rate_code} passengers={len(request.passengers)}"
        )
        data, trace_id = await self._post(
            QUOTE_ADDONS_PATH, request, QuoteAddonsResponseData, token
        )
        logger.info(
            f"Assistcard returned {len(data.quoted_addons)} addons (trace_id={trace_id})"
        )
        return data

    async def issue_vouchers(
        self, params: IssueVouchersParams | dict[str, Any], token: str
    ) -> IssueVouchersResponseData:
        request = self.build_request(IssueVouchersRequest, params)
        # Amount, currency and brand only. Card data is never logged.
        logger.info(
            f"Calling Assistcard Issue Vouchers API: product={request.product_code} "
            f"rate={request.rate_code} passengers={len(request.passengers)} "
            f"amount={request.payment_details.amount} "
            f"currency={request.payment_details.currency or 'USD'}"
        )
        data, trace_id = await self._post(
            ISSUE_VOUCHERS_PATH,
            request,
            IssueVouchersResponseData,
            token,
            timeout=self.settings.assistcard_issue_timeout,
            charges_card=True,
        )
        data.trace_id = trace_id
        logger.info(
            f"Assistcard issued {len(data.vouchers)} vouchers: "
            f"voucher_group={data.voucher_group} trace_id={trace_id} "
            f"total_paid={data.payment_details.total_paid} {data.payment_details.currency}"
        )
        return data

    async def cancel_voucher(
        self, params: CancelVoucherParams | dict[str, Any], token: str
    ) -> CancelVoucherResponseData:
        request = self.build_request(CancelVoucherRequest, params)
        logger.info(f"Calling Assistcard Cancel Voucher API: voucher={request.voucher_code}")
        data, trace_id = await self._post(
            CANCEL_VOUCHER_PATH, request, CancelVoucherResponseData, token
        )
        logger.info(f"Assistcard cancelled voucher {data.voucher_code} (trace_id={trace_id})")
        return data

    async def rectify_validity(
        self, params: RectifyValidityParams | dict[str, Any], token: str
    ) -> RectifyValidityResponseData:
        request = self.build_request(RectifyValidityRequest, params)
        logger.info(
            f"Calling Assistcard Rectify Validity API: voucher={request.voucher_code} "
            f"{request.begin_date}-{request.end_date}"
        )
        data, trace_id = await self._post(
            RECTIFY_VALIDITY_PATH, request, RectifyValidityResponseData, token
        )
        logger.info(f"Assistcard rectified voucher {data.voucher_code} (trace_id={trace_id})")
        return data

    async def _post(
        self,
        path: str,
        request: BaseModel,
        response_model: type[ModelT],
        token: str,
        timeout: Optional[float] = None,
        charges_card: bool = False,
    ) -> tuple[ModelT, str]:
        """
        POST a validated request and unwrap the provider envelope.

        When ``charges_card`` is set, a failure after the request may have
        been delivered raises IssuanceOutcomeUnknownError instead of a
        network error: the card may have been charged.
        """
        url = f"{self.base_url}{path}"
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)

        try:
            async with httpx.AsyncClient(
                timeout=timeout or self.settings.assistcard_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={
                        "Accept": "text/plain",
                        "Authorization": f"Bearer {token}",
                    },
                )
        except (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
            logger.error(f"Could not reach Assistcard at {path}: {type(e).__name__}")
            raise AssistcardNetworkError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            if charges_card:
                logger.error(
                    f"No answer from Assistcard at {path} after the charge request was sent "
                    f"({type(e).__name__}). Outcome unknown, needs manual verification."
                )
                raise IssuanceOutcomeUnknownError(
                    "The payment request was sent but no response was received. "
                    "Do not retry; contact support to verify the charge."
                ) from e
            logger.error(f"Assistcard request to {path} failed: {type(e).__name__}")
            raise AssistcardNetworkError(f"Network error: {e}") from e

        try:
            envelope = ProviderEnvelope[Any].model_validate(response.json())
        except (ValueError, ValidationError) as e:
            self._invalid_response(path, response, None, charges_card)
            raise AssistcardApiError(
                f"Assistcard returned an unreadable response (HTTP {response.status_code})",
                error_code="INVALID_RESPONSE",
                status_code=map_provider_status(response.status_code)
                if response.is_error
                else 502,
            ) from e

        if response.is_error or not envelope.is_success or envelope.data is None:
            logger.warning(
                f"Assistcard error response from {path}: status={response.status_code} "
                f"trace_id={envelope.trace_id} error_code={envelope.error_code} "
                f"message={envelope.error_message or envelope.title}"
            )
            raise create_api_error(envelope, response.status_code)

        try:
            data = response_model.model_validate(envelope.data)
        except ValidationError as e:
            self._invalid_response(path, response, envelope.trace_id, charges_card)
            raise AssistcardApiError(
                "Assistcard returned a response that does not match the expected shape",
                trace_id=envelope.trace_id,
                error_code="INVALID_RESPONSE",
            ) from e

        return data, envelope.trace_id

    def _invalid_response(
        self,
        path: str,
        response: httpx.Response,
        trace_id: Optional[str],
        charges_card: bool,
    ) -> None:
        if charges_card and response.is_success:
            logger.error(
                f"Assistcard accepted the charge request at {path} but the response could "
                f"not be read (trace_id={trace_id}). Outcome unknown, needs manual verification."
            )
            raise IssuanceOutcomeUnknownError(
                "The payment request was accepted but its result could not be read. "
                "Do not retry; contact support to verify the charge."
            )
        logger.error(
            f"Invalid response from Assistcard at {path}: "
            f"status={response.status_code} trace_id={trace_id}"
        )
