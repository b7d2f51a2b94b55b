import json
from typing import Any

import httpx
import pytest
from pydantic import ValidationError

from conftest import make_passenger
from tripcover.config import Settings
from tripcover.errors import (
    AssistcardApiError,
    AssistcardNetworkError,
    InternalServerError,
    IssuanceOutcomeUnknownError,
)
from tripcover.services.assistcard_client import (
    ISSUE_VOUCHERS_PATH,
    QUOTE_PRODUCTS_PATH,
    AssistcardHttpClient,
    map_provider_status,
)

TOKEN = "bearer-token"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        assistcard_api_url="https://assistcard.test/",
        assistcard_username="integration",
        assistcard_password="s3cret",
        assistcard_country_code="AR",
        assistcard_agency_code="12345",
        assistcard_branch_code=7,
    )


class Recorder:
    def __init__(self, responder):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def body(self, index: int = 0) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def gateway(settings: Settings, responder) -> tuple[AssistcardHttpClient, Recorder]:
    recorder = Recorder(responder)
    return AssistcardHttpClient(settings, transport=httpx.MockTransport(recorder)), recorder


def quote_params() -> dict[str, Any]:
    return {
        "beginDate": "2025/02/01",
        "endDate": "2025/02/15",
        "itinerary": {"origin": "EZE", "destination": "MIA"},
        "passengers": [{"countryCode": "AR", "birthDate": "1990/05/10"}],
    }


def issue_params(card_number: str = "{{{tok_card}}}", cvv: str = "{{{tok_cvv}}}") -> dict[str, Any]:
    return {
        "counterCode": "WEB",
        "productCode": "AC",
        "rateCode": "150",
        "beginDate": "2025/02/01",
        "endDate": "2025/02/15",
        "itinerary": {"origin": "EZE", "destination": "MIA"},
        "passengers": [make_passenger()],
        "paymentDetails": {
            "amount": 375.0,
            "cardNumber": card_number,
            "cardHolder": "JUAN PEREZ",
            "expirationDate": "12/27",
            "cvv": cvv,
            "documentNumber": "AB123456",
            "brand": "VISA",
            "email": "juan.perez@example.com",
        },
    }


def products_envelope() -> dict[str, Any]:
    return {
        "traceId": "trace-products",
        "isSuccess": True,
        "data": {
            "destinationArea": "USA",
            "exchangeRate": 1050.5,
            "processingFee": 2.5,
            "quotedProducts": [
                {
                    "productCode": "AC",
                    "rateCode": "150",
                    "name": "AC 150",
                    "description": "Standard coverage",
                    "rateCaption": "Medical USD 150,000",
                    "currency": "USD",
                    "modality": "Daily",
                    "modalityCode": "D",
                    "allowMarkup": False,
                    "amount": {
                        "totalOriginal": 375.0,
                        "total": 375.0,
                        "totalNoTaxesIncluded": 375.0,
                        "subtotalAssistance": 262.5,
                        "subtotalInsurance": 112.5,
                    },
                }
            ],
        },
    }


def issue_envelope() -> dict[str, Any]:
    return {
        "traceId": "trace-issue",
        "isSuccess": True,
        "data": {
            "countryIdentifier": 54,
            "voucherGroup": 555000111,
            "issuanceDate": "2025/01/10",
            "exchangeRate": 1050.5,
            "vouchers": [
                {
                    "code": 123456789,
                    "bookingCode": "BK-1",
                    "documentNumber": "AB123456",
                    "lastName": "Perez",
                    "name": "Juan",
                    "ekitURL": "https://documents.assistcard.com/voucher/123456789",
                    "productCode": "AC",
                    "productName": "AC 150",
                    "effectiveDateStart": "2025/02/01",
                    "effectiveDateEnd": "2025/02/15",
                    "amountRate": {
                        "totalOriginal": 375.0,
                        "total": 375.0,
                        "subtotalAssistance": 262.5,
                        "subtotalInsurance": 112.5,
                        "financialTaxes": 0,
                    },
                }
            ],
            "paymentDetails": {
                "method": "CreditCard",
                "brand": "VISA",
                "installments": 1,
                "referenceNumber": "TXN_ABC123",
                "currency": "ARS",
                "totalPaid": 393937.5,
                "amountRate": {
                    "totalOriginal": 375.0,
                    "total": 375.0,
                    "processingFee": 2.5,
                    "financialTaxes": 0,
                    "financialInterest": 0,
                    "taxesIncluded": 375.0,
                    "noTaxesIncluded": 375.0,
                    "assistance": 262.5,
                    "insurance": 112.5,
                },
            },
        },
    }


class TestStatusMapping:
    @pytest.mark.parametrize(
        "provider_status,expected",
        [
            (400, 400),
            (401, 502),
            (403, 502),
            (404, 404),
            (422, 400),
            (429, 503),
            (500, 502),
            (503, 502),
            (418, 502),
            (None, 502),
        ],
    )
    def test_map_provider_status(self, provider_status, expected):
        assert map_provider_status(provider_status) == expected

    @pytest.mark.asyncio
    async def test_error_envelope_becomes_api_error(self, settings):
        client, _ = gateway(
            settings,
            lambda request: httpx.Response(
                400,
                json={
                    "traceId": "trace-bad",
                    "isSuccess": False,
                    "errorCode": "INVALID_DATES",
                    "errorMessage": "Begin date is in the past",
                },
            ),
        )

        with pytest.raises(AssistcardApiError) as exc_info:
            await client.quote_products(quote_params(), TOKEN)

        error = exc_info.value
        assert error.status_code == 400
        assert error.trace_id == "trace-bad"
        assert error.error_code == "INVALID_DATES"
        assert error.message == "Begin date is in the past"

    @pytest.mark.asyncio
    async def test_provider_credential_failure_is_ours(self, settings):
        client, _ = gateway(
            settings,
            lambda request: httpx.Response(
                401, json={"traceId": "trace-401", "title": "Unauthorized", "status": 401}
            ),
        )

        with pytest.raises(AssistcardApiError) as exc_info:
            await client.quote_products(quote_params(), TOKEN)

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Unauthorized"

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_with_http_200(self, settings):
        client, _ = gateway(
            settings,
            lambda request: httpx.Response(
                200,
                json={
                    "traceId": "trace-declined",
                    "isSuccess": False,
                    "status": 422,
                    "errorCode": "PAYMENT_DECLINED",
                    "errorMessage": "Card declined",
                },
            ),
        )

        with pytest.raises(AssistcardApiError) as exc_info:
            await client.issue_vouchers(issue_params(), TOKEN)

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "PAYMENT_DECLINED"


class TestRequestShape:
    @pytest.mark.asyncio
    async def test_point_of_sale_and_bearer_are_injected(self, settings):
        client, recorder = gateway(
            settings, lambda request: httpx.Response(200, json=products_envelope())
        )

        data = await client.quote_products(quote_params(), TOKEN)

        assert data.quoted_products[0].rate_code == "150"
        request = recorder.requests[0]
        assert str(request.url) == f"https://assistcard.test{QUOTE_PRODUCTS_PATH}"
        assert request.headers["Authorization"] == f"Bearer {TOKEN}"
        body = recorder.body()
        assert body["countryCode"] == "AR"
        assert body["agencyCode"] == "12345"
        assert body["branchCode"] == 7
        assert body["itinerary"] == {"code": "AIRPORT", "origin": "EZE", "destination": "MIA"}

    @pytest.mark.asyncio
    async def test_missing_point_of_sale_is_a_server_fault(self, settings):
        settings.assistcard_country_code = ""
        client, recorder = gateway(
            settings, lambda request: httpx.Response(200, json=products_envelope())
        )

        with pytest.raises(InternalServerError):
            await client.quote_products(quote_params(), TOKEN)
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_api_url_is_a_server_fault(self, settings):
        settings.assistcard_api_url = ""
        client, recorder = gateway(
            settings, lambda request: httpx.Response(200, json=products_envelope())
        )

        with pytest.raises(InternalServerError):
            await client.quote_products(quote_params(), TOKEN)
        assert recorder.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["cardNumber", "cvv"])
    async def test_unwrapped_card_data_never_leaves(self, settings, field):
        params = issue_params()
        params["paymentDetails"][field] = "4111111111111111" if field == "cardNumber" else "123"
        client, recorder = gateway(
            settings, lambda request: httpx.Response(200, json=issue_envelope())
        )

        with pytest.raises(ValidationError) as exc_info:
            await client.issue_vouchers(params, TOKEN)

        assert recorder.requests == []
        locations = [error["loc"] for error in exc_info.value.errors()]
        assert ("paymentDetails", field) in locations


class TestIssueVouchers:
    @pytest.mark.asyncio
    async def test_successful_issue_carries_trace_id(self, settings):
        client, recorder = gateway(
            settings, lambda request: httpx.Response(200, json=issue_envelope())
        )

        data = await client.issue_vouchers(issue_params(), TOKEN)

        assert data.voucher_group == 555000111
        assert [v.code for v in data.vouchers] == [123456789]
        assert data.trace_id == "trace-issue"
        assert recorder.requests[0].url.path == ISSUE_VOUCHERS_PATH
        body = recorder.body()
        assert body["paymentDetails"]["cardNumber"] == "{{{tok_card}}}"
        assert body["countryCode"] == "AR"

    @pytest.mark.asyncio
    async def test_read_timeout_on_charge_is_outcome_unknown(self, settings):
        def responder(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = gateway(settings, responder)

        with pytest.raises(IssuanceOutcomeUnknownError) as exc_info:
            await client.issue_vouchers(issue_params(), TOKEN)
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_unreadable_success_on_charge_is_outcome_unknown(self, settings):
        client, _ = gateway(settings, lambda request: httpx.Response(200, text="<html>OK</html>"))

        with pytest.raises(IssuanceOutcomeUnknownError):
            await client.issue_vouchers(issue_params(), TOKEN)

    @pytest.mark.asyncio
    async def test_connect_error_on_charge_is_network_error(self, settings):
        def responder(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = gateway(settings, responder)

        with pytest.raises(AssistcardNetworkError) as exc_info:
            await client.issue_vouchers(issue_params(), TOKEN)
        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == "NETWORK_ERROR"


class TestNetworkFailures:
    @pytest.mark.asyncio
    async def test_connect_error_is_network_error(self, settings):
        def responder(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = gateway(settings, responder)

        with pytest.raises(AssistcardNetworkError) as exc_info:
            await client.quote_products(quote_params(), TOKEN)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_read_timeout_on_quote_is_network_error(self, settings):
        def responder(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = gateway(settings, responder)

        with pytest.raises(AssistcardNetworkError):
            await client.quote_products(quote_params(), TOKEN)

    @pytest.mark.asyncio
    async def test_unreadable_response(self, settings):
        client, _ = gateway(settings, lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(AssistcardApiError) as exc_info:
            await client.quote_products(quote_params(), TOKEN)

        assert exc_info.value.error_code == "INVALID_RESPONSE"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_response_with_wrong_shape(self, settings):
        client, _ = gateway(
            settings,
            lambda request: httpx.Response(
                200, json={"traceId": "trace-odd", "isSuccess": True, "data": {"unexpected": 1}}
            ),
        )

        with pytest.raises(AssistcardApiError) as exc_info:
            await client.quote_products(quote_params(), TOKEN)

        assert exc_info.value.error_code == "INVALID_RESPONSE"
        assert exc_info.value.trace_id == "trace-odd"
