from datetime import UTC, datetime, timedelta

import httpx
import pytest

from tripcover.config import Settings
from tripcover.errors import AssistcardAuthenticationError
from tripcover.services.token_manager import LOGIN_PATH, REFRESH_PATH, AssistcardTokenManager

START = datetime(2025, 1, 10, 12, 0, tzinfo=UTC)
TOKEN_LIFETIME = timedelta(hours=1)
MARGIN = timedelta(minutes=5)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class FakeAssistcard:
    """Records calls and answers like the provider's authentication API."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.logins = 0
        self.refreshes = 0
        self.refresh_requests: list[httpx.Request] = []
        self.login_status = 200
        self.refresh_status = 200
        self.lifetime = TOKEN_LIFETIME

    def envelope(self, token: str, trace_id: str) -> dict:
        return {
            "traceId": trace_id,
            "isSuccess": True,
            "data": {
                "token": token,
                "expiration": (self.clock() + self.lifetime).isoformat(),
            },
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == LOGIN_PATH:
            self.logins += 1
            if self.login_status != 200:
                return httpx.Response(
                    self.login_status,
                    json={
                        "traceId": "login-denied",
                        "type": "https://tools.ietf.org/html/rfc9110#section-15.5.2",
                        "title": "Unauthorized",
                        "status": self.login_status,
                    },
                )
            return httpx.Response(
                200,
                json=self.envelope(f"login-token-{self.logins}", f"login-{self.logins}"),
                headers={"set-cookie": f"acsession=s{self.logins}; Path=/; HttpOnly; Secure"},
            )

        if request.url.path == REFRESH_PATH:
            self.refreshes += 1
            self.refresh_requests.append(request)
            if self.refresh_status != 200:
                return httpx.Response(
                    self.refresh_status,
                    json={
                        "traceId": "refresh-denied",
                        "isSuccess": False,
                        "errorCode": "INVALID_REFRESH_TOKEN",
                        "errorMessage": "Refresh token expired",
                    },
                )
            return httpx.Response(
                200, json=self.envelope(f"refreshed-token-{self.refreshes}", "refresh")
            )

        return httpx.Response(404)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        assistcard_api_url="https://assistcard.test",
        assistcard_username="integration",
        assistcard_password="s3cret",
        assistcard_token_safety_margin=int(MARGIN.total_seconds()),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def provider(clock: FakeClock) -> FakeAssistcard:
    return FakeAssistcard(clock)


@pytest.fixture
def manager(settings: Settings, clock: FakeClock, provider: FakeAssistcard) -> AssistcardTokenManager:
    return AssistcardTokenManager(
        settings, clock=clock, transport=httpx.MockTransport(provider.handler)
    )


class TestTokenCache:
    @pytest.mark.asyncio
    async def test_first_call_logs_in(self, manager, provider):
        token = await manager.get_valid_token()

        assert token == "login-token-1"
        assert provider.logins == 1
        assert manager.cached.refresh_cookie == "acsession=s1"

    @pytest.mark.asyncio
    async def test_fresh_token_is_served_from_cache(self, manager, provider, clock):
        await manager.get_valid_token()
        clock.advance(timedelta(minutes=30))

        token = await manager.get_valid_token()

        assert token == "login-token-1"
        assert provider.logins == 1
        assert provider.refreshes == 0

    @pytest.mark.asyncio
    async def test_safety_margin_applied_when_caching(self, manager, clock):
        await manager.get_valid_token()

        assert manager.cached.expires_at == START + TOKEN_LIFETIME - MARGIN

    @pytest.mark.asyncio
    async def test_has_valid_token_follows_cache(self, manager, clock):
        assert manager.has_valid_token() is False

        await manager.get_valid_token()
        assert manager.has_valid_token() is True

        clock.advance(TOKEN_LIFETIME - MARGIN)
        assert manager.has_valid_token() is False

    @pytest.mark.asyncio
    async def test_clear_forces_new_login(self, manager, provider):
        await manager.get_valid_token()
        manager.clear()

        token = await manager.get_valid_token()

        assert manager.cached is not None
        assert token == "login-token-2"
        assert provider.logins == 2


class TestTokenRefresh:
    @pytest.mark.asyncio
    async def test_token_inside_margin_is_refreshed(self, manager, provider, clock):
        await manager.get_valid_token()
        # 56 minutes in: 4 minutes of validity left, under the margin
        clock.advance(timedelta(minutes=56))

        token = await manager.get_valid_token()

        assert token == "refreshed-token-1"
        assert provider.refreshes == 1
        assert provider.logins == 1
        request = provider.refresh_requests[0]
        assert request.headers["Authorization"] == "Bearer login-token-1"
        assert request.headers["Cookie"] == "acsession=s1"
        # Session cookie survives the refresh
        assert manager.cached.refresh_cookie == "acsession=s1"

    @pytest.mark.asyncio
    async def test_rejected_refresh_falls_back_to_login(self, manager, provider, clock):
        await manager.get_valid_token()
        clock.advance(TOKEN_LIFETIME)
        provider.refresh_status = 401

        token = await manager.get_valid_token()

        assert token == "login-token-2"
        assert provider.refreshes == 1
        assert provider.logins == 2
        assert manager.cached.refresh_cookie == "acsession=s2"

    @pytest.mark.asyncio
    async def test_refresh_network_error_falls_back_to_login(self, settings, clock, provider):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == REFRESH_PATH:
                raise httpx.ConnectError("connection refused", request=request)
            return provider.handler(request)

        manager = AssistcardTokenManager(
            settings, clock=clock, transport=httpx.MockTransport(handler)
        )
        await manager.get_valid_token()
        clock.advance(TOKEN_LIFETIME)

        token = await manager.get_valid_token()

        assert token == "login-token-2"
        assert provider.logins == 2

    @pytest.mark.asyncio
    async def test_refreshed_token_inside_margin_falls_back_to_login(
        self, manager, provider, clock
    ):
        await manager.get_valid_token()
        clock.advance(TOKEN_LIFETIME)
        provider.lifetime = timedelta(minutes=2)

        with pytest.raises(AssistcardAuthenticationError):
            # Refresh is discarded, and the login answer is just as short lived
            await manager.get_valid_token()

        assert provider.refreshes == 1
        assert provider.logins == 2


class TestTokenLogin:
    @pytest.mark.asyncio
    async def test_rejected_credentials(self, manager, provider):
        provider.login_status = 401

        with pytest.raises(AssistcardAuthenticationError) as exc_info:
            await manager.get_valid_token()

        assert exc_info.value.status_code == 500
        assert "login-denied" in exc_info.value.message
        assert manager.cached is None

    @pytest.mark.asyncio
    async def test_unreachable_provider(self, settings, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        manager = AssistcardTokenManager(
            settings, clock=clock, transport=httpx.MockTransport(handler)
        )

        with pytest.raises(AssistcardAuthenticationError):
            await manager.get_valid_token()

    @pytest.mark.asyncio
    async def test_missing_credentials(self, clock, provider):
        settings = Settings(assistcard_api_url="https://assistcard.test", assistcard_username="")
        manager = AssistcardTokenManager(
            settings, clock=clock, transport=httpx.MockTransport(provider.handler)
        )

        with pytest.raises(AssistcardAuthenticationError):
            await manager.get_valid_token()
        assert provider.logins == 0

    @pytest.mark.asyncio
    async def test_never_hands_out_token_inside_margin(self, manager, provider, clock):
        for _ in range(8):
            await manager.get_valid_token()
            provider_expiry = manager.cached.expires_at + MARGIN
            assert provider_expiry - clock() > MARGIN
            clock.advance(timedelta(minutes=17))

        assert provider.refreshes > 0
