import pytest
import pytest_asyncio
from types import SimpleNamespace
from datetime import timedelta
from typing import AsyncGenerator, List, Optional

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# --- App Imports ---
from main import app
from findora.config import Settings
from findora.database.connection import Base, get_db
from findora.database import models  # noqa: F401
from findora.models.place import Place
from findora.services.category_mapper import google_category_mapper
from findora.services.context import ServiceContext, get_services
from findora.services.enrichment import CategorizationEnricher
from findora.services.places_cache import PlacesCache
from findora.services.places_provider import PlaceProvider
from findora.services.places_service import PlacesService
from findora.utils.errors import PlacesProviderError
from findora.utils.security import create_access_token

# --- Database Setup for Testing ---
DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# --- Test Doubles ---

class StubProvider(PlaceProvider):
    """Records every upstream call and answers with canned places."""

    name = "stub"
    category_mapper = google_category_mapper

    def __init__(self, places: List[Place], error: Optional[Exception] = None):
        super().__init__()
        self.places = places
        self.error = error
        self.nearby_calls = []
        self.text_calls = []

    async def search_nearby(self, lat, lng, radius, category=None):
        self.nearby_calls.append((lat, lng, radius, category))
        if self.error:
            raise self.error
        return list(self.places)

    async def search_by_text(self, query, lat=None, lng=None):
        self.text_calls.append((query, lat, lng))
        if self.error:
            raise self.error
        return list(self.places)


class FakeGeminiModel:
    async def generate_content_async(self, prompt, **kwargs):
        return SimpleNamespace(text='{"category": "Pizzeria", "tags": ["pizza", "casual", "quick bite"]}')


MOCK_PLACES = [
    Place(id="p-far", name="Far Pizza", address="1 Far St", latitude="40.7600", longitude="-74.0060",
          category="Restaurant", rating="4.8", priceLevel=2, types=["restaurant", "food"]),
    Place(id="p-near", name="Near Pizza", address="2 Near St", latitude="40.7130", longitude="-74.0050",
          category="Restaurant", rating="4.1", priceLevel=1, types=["restaurant"]),
]


def make_services(provider: Optional[PlaceProvider]) -> ServiceContext:
    cache = PlacesCache()
    enricher = CategorizationEnricher(model=FakeGeminiModel())
    context = ServiceContext(settings=Settings(), cache=cache, enricher=enricher)
    if provider is not None:
        context.places = PlacesService(provider=provider, enricher=enricher, cache=cache)
    return context


# --- Pytest Fixtures ---

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    TestingSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with TestingSessionLocal() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider(MOCK_PLACES)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, stub_provider: StubProvider) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    services = make_services(stub_provider)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def authenticated_client(client: AsyncClient) -> AsyncClient:
    user_data = {"email": "authtest@example.com", "password": "a_secure_password", "name": "Auth Test User"}
    await client.post("/auth/register", json=user_data)
    login_response = await client.post(
        "/auth/login", json={"email": "authtest@example.com", "password": "a_secure_password"}
    )
    token = login_response.json()["token"]
    client.headers["Authorization"] = f"Bearer {token}"
    return client


# =================================================================================
# 1. Root
# =================================================================================

@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


# =================================================================================
# 2. Authentication
# =================================================================================

@pytest.mark.asyncio
async def test_register_login_and_me(client: AsyncClient):
    register = await client.post(
        "/auth/register", json={"email": "new@example.com", "password": "secret123", "name": "New User"}
    )
    assert register.status_code == 200
    user = register.json()["user"]
    assert user["email"] == "new@example.com"
    assert user["name"] == "New User"
    assert "id" in user and "createdAt" in user
    assert "password" not in user

    login = await client.post("/auth/login", json={"email": "new@example.com", "password": "secret123"})
    assert login.status_code == 200
    body = login.json()
    assert body["user"]["id"] == user["id"]
    assert body["token"]

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "new@example.com"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient):
    user_data = {"email": "dup@example.com", "password": "secret123", "name": "Dup"}
    assert (await client.post("/auth/register", json=user_data)).status_code == 200
    response = await client.post("/auth/register", json=user_data)
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_register_rejects_invalid_payload(client: AsyncClient):
    response = await client.post("/auth/register", json={"email": "not-an-email", "password": "123", "name": ""})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient):
    await client.post("/auth/register", json={"email": "wp@example.com", "password": "secret123", "name": "WP"})
    response = await client.post("/auth/login", json={"email": "wp@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient):
    response = await client.post("/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_missing_token_is_401(client: AsyncClient):
    response = await client.get("/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_403(client: AsyncClient):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-real-token"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_expired_token_is_403(client: AsyncClient):
    register = await client.post(
        "/auth/register", json={"email": "late@example.com", "password": "secret123", "name": "Late"}
    )
    expired = create_access_token(register.json()["user"]["id"], expires_delta=timedelta(minutes=-1))

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Invalid token"


# =================================================================================
# 3. Places
# =================================================================================

@pytest.mark.asyncio
async def test_nearby_requires_auth(client: AsyncClient, stub_provider: StubProvider):
    response = await client.get("/places/nearby", params={"lat": 40.7128, "lng": -74.0060})
    assert response.status_code == 401
    assert stub_provider.nearby_calls == []


@pytest.mark.asyncio
async def test_nearby_requires_coordinates(authenticated_client: AsyncClient, stub_provider: StubProvider):
    response = await authenticated_client.get("/places/nearby", params={"lng": -74.0060})
    assert response.status_code == 400
    assert response.json()["detail"] == "Latitude and longitude are required"
    assert stub_provider.nearby_calls == []


@pytest.mark.asyncio
async def test_nearby_blank_coordinates_are_missing(authenticated_client: AsyncClient, stub_provider: StubProvider):
    response = await authenticated_client.get("/places/nearby?lat=&lng=")
    assert response.status_code == 400
    assert response.json()["detail"] == "Latitude and longitude are required"
    assert stub_provider.nearby_calls == []


@pytest.mark.asyncio
async def test_nearby_rejects_non_numeric_coordinates(authenticated_client: AsyncClient, stub_provider: StubProvider):
    for params in ({"lat": "north", "lng": "-74.0060"}, {"lat": "nan", "lng": "-74.0060"}):
        response = await authenticated_client.get("/places/nearby", params=params)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid latitude"
    assert stub_provider.nearby_calls == []


@pytest.mark.asyncio
async def test_search_blank_coordinates_mean_no_location(
        authenticated_client: AsyncClient, stub_provider: StubProvider
):
    response = await authenticated_client.get("/places/search?query=pizza&lat=&lng=")
    assert response.status_code == 200
    assert len(response.json()["places"]) == 2
    assert stub_provider.text_calls == [("pizza", None, None)]


@pytest.mark.asyncio
async def test_nearby_returns_enriched_places_and_caches(
        authenticated_client: AsyncClient, stub_provider: StubProvider
):
    params = {"lat": 40.7128, "lng": -74.0060, "radius": 2000, "type": "Restaurant"}

    first = await authenticated_client.get("/places/nearby", params=params)
    assert first.status_code == 200
    places = first.json()["places"]
    assert [p["id"] for p in places] == ["p-far", "p-near"]
    assert places[0]["latitude"] == "40.7600"
    assert places[0]["rating"] == "4.8"
    assert places[0]["aiCategory"] == "Pizzeria"
    assert places[0]["aiTags"] == ["pizza", "casual", "quick bite"]

    second = await authenticated_client.get("/places/nearby", params=params)
    assert second.status_code == 200
    assert second.json() == first.json()
    assert stub_provider.nearby_calls == [(40.7128, -74.0060, 2000, "Restaurant")]


@pytest.mark.asyncio
async def test_nearby_default_radius(authenticated_client: AsyncClient, stub_provider: StubProvider):
    response = await authenticated_client.get("/places/nearby", params={"lat": 40.7128, "lng": -74.0060})
    assert response.status_code == 200
    assert stub_provider.nearby_calls[0][2] == 2000


@pytest.mark.asyncio
async def test_nearby_sorted_by_distance(authenticated_client: AsyncClient):
    response = await authenticated_client.get(
        "/places/nearby", params={"lat": 40.7128, "lng": -74.0060, "sortBy": "distance"}
    )
    assert response.status_code == 200
    assert [p["id"] for p in response.json()["places"]] == ["p-near", "p-far"]


@pytest.mark.asyncio
async def test_nearby_filtered_by_price_level(authenticated_client: AsyncClient):
    response = await authenticated_client.get(
        "/places/nearby", params={"lat": 40.7128, "lng": -74.0060, "priceLevel": [1, 3]}
    )
    assert response.status_code == 200
    assert [p["id"] for p in response.json()["places"]] == ["p-near"]


@pytest.mark.asyncio
async def test_nearby_provider_error_is_500(db_session: AsyncSession):
    failing = StubProvider([], error=PlacesProviderError("Google Places error: Service Unavailable"))

    async def override_get_db():
        yield db_session

    services = make_services(failing)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            await ac.post("/auth/register", json={"email": "e@example.com", "password": "secret123", "name": "E"})
            login = await ac.post("/auth/login", json={"email": "e@example.com", "password": "secret123"})
            headers = {"Authorization": f"Bearer {login.json()['token']}"}

            for _ in range(2):
                response = await ac.get(
                    "/places/nearby", params={"lat": 40.7128, "lng": -74.0060}, headers=headers
                )
                assert response.status_code == 500
                assert response.json()["detail"] == "Google Places error: Service Unavailable"
    finally:
        app.dependency_overrides.clear()

    # Failures are not cached.
    assert len(failing.nearby_calls) == 2


@pytest.mark.asyncio
async def test_places_unconfigured_is_503(db_session: AsyncSession):
    async def override_get_db():
        yield db_session

    services = make_services(None)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            await ac.post("/auth/register", json={"email": "u@example.com", "password": "secret123", "name": "U"})
            login = await ac.post("/auth/login", json={"email": "u@example.com", "password": "secret123"})
            headers = {"Authorization": f"Bearer {login.json()['token']}"}
            response = await ac.get("/places/search", params={"query": "pizza"}, headers=headers)
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_search_requires_query(authenticated_client: AsyncClient, stub_provider: StubProvider):
    for params in ({}, {"query": "   "}):
        response = await authenticated_client.get("/places/search", params=params)
        assert response.status_code == 400
        assert response.json()["detail"] == "Search query is required"
    assert stub_provider.text_calls == []


@pytest.mark.asyncio
async def test_search_by_text(authenticated_client: AsyncClient, stub_provider: StubProvider):
    response = await authenticated_client.get(
        "/places/search", params={"query": "pizza", "lat": 40.7128, "lng": -74.0060}
    )
    assert response.status_code == 200
    assert len(response.json()["places"]) == 2
    assert stub_provider.text_calls == [("pizza", 40.7128, -74.0060)]


# =================================================================================
# 4. Search history
# =================================================================================

@pytest.mark.asyncio
async def test_search_history_requires_auth(client: AsyncClient):
    assert (await client.get("/search-history")).status_code == 401


@pytest.mark.asyncio
async def test_add_and_list_search_history(authenticated_client: AsyncClient):
    entry = {"query": "pizza", "location": "New York", "radius": 2000, "filters": {"type": "Restaurant"}}
    response = await authenticated_client.post("/search-history", json=entry)
    assert response.status_code == 200
    history = response.json()["history"]
    assert history["query"] == "pizza"
    assert history["radius"] == 2000
    assert history["filters"] == {"type": "Restaurant"}
    assert "id" in history and "userId" in history and "timestamp" in history

    listing = await authenticated_client.get("/search-history")
    assert listing.status_code == 200
    assert [h["id"] for h in listing.json()["history"]] == [history["id"]]


@pytest.mark.asyncio
async def test_search_history_keeps_newest_fifty(authenticated_client: AsyncClient):
    for i in range(51):
        response = await authenticated_client.post(
            "/search-history", json={"query": f"q{i}", "location": "NYC", "radius": 1000}
        )
        assert response.status_code == 200

    listing = (await authenticated_client.get("/search-history")).json()["history"]
    assert len(listing) == 50
    assert listing[0]["query"] == "q50"
    assert listing[-1]["query"] == "q1"
    assert "q0" not in {h["query"] for h in listing}


@pytest.mark.asyncio
async def test_delete_search_history(authenticated_client: AsyncClient):
    created = await authenticated_client.post(
        "/search-history", json={"query": "coffee", "location": "NYC", "radius": 500}
    )
    history_id = created.json()["history"]["id"]

    response = await authenticated_client.delete(f"/search-history/{history_id}")
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert (await authenticated_client.get("/search-history")).json()["history"] == []

    # Unknown ids are a no-op.
    response = await authenticated_client.delete("/search-history/99999")
    assert response.json() == {"success": True}


@pytest.mark.asyncio
async def test_search_history_is_per_user(authenticated_client: AsyncClient):
    await authenticated_client.post("/search-history", json={"query": "mine", "location": "NYC", "radius": 500})

    await authenticated_client.post(
        "/auth/register", json={"email": "other@example.com", "password": "secret123", "name": "Other"}
    )
    login = await authenticated_client.post(
        "/auth/login", json={"email": "other@example.com", "password": "secret123"}
    )
    other_headers = {"Authorization": f"Bearer {login.json()['token']}"}
    response = await authenticated_client.get("/search-history", headers=other_headers)
    assert response.json()["history"] == []
