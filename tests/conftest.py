"""
Shared fixtures.

Every test gets a fresh SQLite database file. The environment is set
before the application is imported so the module-level engine and the
cached settings never point at a real server.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV_MODE"] = "development"
os.environ["REALTIME_ENABLED"] = "false"
os.environ["ENFORCE_BUSINESS_HOURS"] = "false"

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from app.database import build_session_maker, init_db
from app.schemas import ProductCreate
from app.services import catalog
from app.services.business_hours import BusinessHoursService
from app.services.delivery_zones import DeliveryZoneResolver
from app.services.geo import BaseGeocoder, GeocodeResult
from app.services.geo.distance import EARTH_RADIUS_KM
from app.services.notifications import MockNotificationService
from app.services.realtime import LocalBroadcaster
from app.services.settings_store import SettingsStore
from app.services.storage import ObjectStorage

RESTAURANT_LAT = 45.047698
RESTAURANT_LNG = 7.679902

# Kilometers per degree of latitude on the 6371 km sphere
KM_PER_DEGREE = EARTH_RADIUS_KM * 3.141592653589793 / 180


def north_of_restaurant(km: float) -> tuple[float, float]:
    """A point ``km`` kilometers due north of the default restaurant location."""
    return RESTAURANT_LAT + km / KM_PER_DEGREE, RESTAURANT_LNG


class StubGeocoder(BaseGeocoder):
    """Geocoder answering from a fixed table; unknown addresses give no result."""

    def __init__(self, locations: Optional[dict[str, tuple[float, float]]] = None, error: Optional[Exception] = None):
        self.locations = dict(locations or {})
        self.error = error
        self.calls: list[str] = []

    @property
    def provider_name(self) -> str:
        return "stub"

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        if address not in self.locations:
            return None
        lat, lng = self.locations[address]
        return GeocodeResult(latitude=lat, longitude=lng, formatted_address=f"{address}, Torino")

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def geocoder() -> StubGeocoder:
    return StubGeocoder({
        "Near Street 1": north_of_restaurant(3),
        "Middle Street 2": north_of_restaurant(7),
        "Far Street 3": north_of_restaurant(12),
        "Remote Street 4": north_of_restaurant(20),
    })


@pytest_asyncio.fixture
async def engine(tmp_path):
    # A file database: every session gets its own connection, as in production
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    await init_db(bind=engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def broadcaster() -> LocalBroadcaster:
    return LocalBroadcaster()


@pytest_asyncio.fixture
async def store(session_maker, broadcaster) -> SettingsStore:
    store = SettingsStore(session_maker, broadcaster=broadcaster)
    assert await store.initialize()
    return store


@pytest.fixture
def resolver(store, geocoder) -> DeliveryZoneResolver:
    return DeliveryZoneResolver(store, geocoder_factory=lambda api_key: geocoder)


@pytest.fixture
def business_hours(store) -> BusinessHoursService:
    return BusinessHoursService(store, timezone="Europe/Rome")


@pytest.fixture
def notifier() -> MockNotificationService:
    return MockNotificationService()


@pytest.fixture
def object_storage(tmp_path) -> ObjectStorage:
    return ObjectStorage(tmp_path / "uploads", base_url="/uploads", max_bytes=1024, attempts=3, lock_timeout=1)


@pytest_asyncio.fixture
async def margherita(db):
    return await catalog.create_product(db, ProductCreate(name="Margherita", price=7.0, stock_quantity=10))


@pytest_asyncio.fixture
async def diavola(db):
    return await catalog.create_product(db, ProductCreate(name="Diavola", price=8.5))


@pytest_asyncio.fixture
async def client(session_maker, geocoder, notifier, object_storage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client on the app wired to the test database (lifespan not run)."""
    from app.database import get_db
    from app.main import app, configure_services

    store = configure_services(
        app,
        session_maker,
        broadcaster=None,
        notifier=notifier,
        object_storage=object_storage,
        geocoder_factory=lambda api_key: geocoder,
    )
    await store.initialize()

    async def get_db_override() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = get_db_override

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client

    app.dependency_overrides.clear()
