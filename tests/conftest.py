import os

# Set test environment
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "change-me-in-production"
os.environ["ASSISTCARD_USE_MOCK"] = "true"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tripcover.database import Base, get_db
from tripcover.main import app
from tripcover.models import User
from tripcover.services.assistcard_mock import MockAssistcardClient, StaticTokenManager
from tripcover.services.providers import get_assistcard_client, get_token_manager
from tripcover.utils.auth import create_access_token

# In-memory SQLite by default; point TEST_DATABASE_URL at Postgres to run
# against the production dialect.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async engine for each test."""
    engine_kwargs: dict[str, Any] = {"echo": False}
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        engine_kwargs["poolclass"] = StaticPool
        engine_kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_async_engine(TEST_DATABASE_URL, **engine_kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def mock_gateway() -> MockAssistcardClient:
    return MockAssistcardClient()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, mock_gateway: MockAssistcardClient
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database and gateway overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_assistcard_client] = lambda: mock_gateway
    app.dependency_overrides[get_token_manager] = StaticTokenManager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(db_session: AsyncSession, name: str = "Test User") -> User:
    unique_id = uuid4()
    user = User(
        id=unique_id,
        external_id=f"test-user-{unique_id}",
        email=f"test-{unique_id}@example.com",
        display_name=name,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user with unique identifiers."""
    return await create_user(db_session)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, name="Other User")


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Create authorization headers for authenticated requests."""
    token = create_access_token(test_user.external_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(other_user: User) -> dict[str, str]:
    token = create_access_token(other_user.external_id)
    return {"Authorization": f"Bearer {token}"}


def make_passenger(
    name: str = "Juan",
    lastname: str = "Perez",
    email: str = "juan.perez@example.com",
    document_number: str = "AB123456",
    phone: str = "54 11 55551234",
    birth_date: str = "1985/03/20",
) -> dict[str, Any]:
    return {
        "countryCode": "AR",
        "documentType": 1,
        "documentNumber": document_number,
        "birthDate": birth_date,
        "lastname": lastname,
        "name": name,
        "email": email,
        "phone": phone,
        "addressData": {
            "countryCode": "AR",
            "streetName": "Av. Corrientes",
            "streetNumber": "1234",
            "postalCode": "C1043",
            "city": "Buenos Aires",
            "state": "CABA",
            "complements": "Piso 5",
        },
    }


@pytest.fixture
def issuance_payload() -> dict[str, Any]:
    """Two travellers, tokenized card, amount matching the quoted product."""
    return {
        "counterCode": "WEB",
        "productCode": "AC",
        "rateCode": "150",
        "beginDate": "2025/02/01",
        "endDate": "2025/02/15",
        "itinerary": {"code": "AIRPORT", "origin": "EZE", "destination": "MIA"},
        "passengers": [
            make_passenger(),
            make_passenger(
                name="Maria",
                lastname="Gomez",
                email="maria.gomez@example.com",
                document_number="CD654321",
                birth_date="1988/11/02",
            ),
        ],
        "paymentDetails": {
            "currency": "ARS",
            "amount": 750.0,
            "installments": 1,
            "cardNumber": "{{{tok_4f9a8c2e}}}",
            "cardHolder": "JUAN PEREZ",
            "expirationDate": "12/27",
            "cvv": "{{{tok_cvv_91b3}}}",
            "documentNumber": "AB123456",
            "brand": "VISA",
            "email": "juan.perez@example.com",
        },
    }


@pytest.fixture
def saved_quote_payload() -> dict[str, Any]:
    return {
        "origin": "EZE",
        "destination": "MIA",
        "beginDate": "2025/02/01",
        "endDate": "2025/02/15",
        "travelType": 1,
        "passengersCount": 1,
        "passengers": [{"kind": "minimal", "countryCode": "AR", "birthDate": "1990/05/10"}],
        "productCode": "AC",
        "rateCode": "150",
        "productName": "AC 150",
        "quotedTotal": "375.00",
        "quotedCurrency": "USD",
    }
