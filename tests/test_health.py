import pytest
from httpx import AsyncClient

from tripcover.main import app
from tripcover.services.assistcard_mock import StaticTokenManager
from tripcover.services.providers import get_token_manager


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test that health check endpoint returns OK."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_reports_database_and_gateway(client: AsyncClient):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"] == "healthy"
    assert data["gateway"] == {"mode": "mock", "token_cached": True}


@pytest.mark.asyncio
async def test_readiness_reports_missing_provider_token(client: AsyncClient):
    class LoggedOutTokenManager(StaticTokenManager):
        def has_valid_token(self) -> bool:
            return False

    app.dependency_overrides[get_token_manager] = LoggedOutTokenManager

    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    data = response.json()
    # Login happens on demand, so the service stays ready
    assert data["status"] == "healthy"
    assert data["gateway"]["token_cached"] is False
