from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from listings.core.config import Settings
from listings.db.models import (
    Agent, City, Community, OfferingType, Property, PropertyImage, PropertyStatus, PropertyType,
)
from listings.db.repository import PropertyRepository
from listings.db.session import Database
from listings.main import create_app
from listings.search.revalidation import Revalidator
from listings.search.service import ListingSearchService
from listings.search.writes import ListingWriteService
from listings.utils.cache import MemoryCache

TEST_SECRET = "test-secret"
TEST_API_KEY = "test-api-key"
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        REDIS_URL="",
        REVALIDATE_SECRET=TEST_SECRET,
        ADMIN_API_KEY=TEST_API_KEY,
        LOG_JSON=False,
        QUERY_TIMEOUT=5.0,
        LISTING_PAGE_SIZE=12,
        PROPERTY_TYPE_PAGE_SIZE=9,
    )


@pytest.fixture
async def database(settings):
    """In-memory SQLite database with seeded lookup tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db = Database(settings, engine=engine)
    await db.create_all()
    await seed_lookups(db)
    yield db
    await db.dispose()


@pytest.fixture
def cache():
    return MemoryCache(default_ttl=60)


@pytest.fixture
def repository(database):
    return PropertyRepository(database, timeout=5.0)


@pytest.fixture
def search_service(repository, cache, settings):
    return ListingSearchService(repository, cache, settings)


@pytest.fixture
def write_service(repository, cache):
    return ListingWriteService(repository, Revalidator(cache))


@pytest.fixture
def app(settings, database, cache):
    return create_app(settings=settings, database=database, cache=cache)


@pytest.fixture
def client(settings, cache):
    """Test client for endpoints that do not touch the database."""
    app = create_app(settings=settings, cache=cache)
    with TestClient(app) as test_client:
        yield test_client


async def seed_lookups(db: Database) -> None:
    async with db.session() as session:
        session.add_all([
            OfferingType(id=1, name="For Rent", slug="for-rent"),
            OfferingType(id=2, name="For Sale", slug="for-sale"),
            OfferingType(id=3, name="Commercial Rent", slug="commercial-rent"),
            OfferingType(id=4, name="Commercial Sale", slug="commercial-sale"),
            PropertyType(id=1, name="Apartment", slug="apartment"),
            PropertyType(id=2, name="Villa", slug="villa"),
            City(id=1, name="Dubai", slug="dubai"),
            Community(id=1, name="Palm Jumeirah", short_name="Palm", slug="palm-jumeirah", city_id=1),
            Community(id=2, name="Dubai Marina", short_name="Marina", slug="dubai-marina", city_id=1),
            Community(id=3, name="Downtown Dubai", slug="downtown-dubai", city_id=1),
            Agent(id=1, name="Sara Ali", slug="sara-ali", email="sara@example.com", phone="+971500000000"),
        ])


async def add_properties(
    db: Database,
    count: int,
    offering_type_id: int = 1,
    property_type_id: int = 1,
    community_id: Optional[int] = 1,
    price_start: int = 500000,
    price_step: int = 10000,
    slug_prefix: str = "listing",
    **fields,
) -> List[int]:
    """Insert ``count`` published properties with increasing price and creation time."""
    ids = []
    async with db.session() as session:
        for index in range(count):
            prop = Property(
                title=f"{slug_prefix.title()} {index}",
                slug=f"{slug_prefix}-{index}",
                price=price_start + index * price_step,
                status=PropertyStatus.PUBLISHED,
                offering_type_id=offering_type_id,
                property_type_id=property_type_id,
                community_id=community_id,
                created_at=BASE_TIME + timedelta(minutes=index),
                updated_at=BASE_TIME + timedelta(minutes=index),
                **fields,
            )
            session.add(prop)
            await session.flush()
            ids.append(prop.id)
    return ids


async def add_images(db: Database, property_id: int, images) -> None:
    """Attach (url, order) pairs to a property."""
    async with db.session() as session:
        session.add_all([PropertyImage(property_id=property_id, url=url, order=order) for url, order in images])
