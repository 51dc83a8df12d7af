"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from node_intake.api.app import app
from node_intake.api.deps import get_db_factory
from node_intake.audit.sink import SqlAuditSink
from node_intake.config.settings import Settings, get_settings
from node_intake.models.base import Base
from node_intake.models.entity import Entity
from node_intake.models.node import Node
from node_intake.registry.reader import SqlRegistryReader

OWNER = "owner-1"
OTHER_OWNER = "owner-2"

CSV_HEADER = (
    "node_name,website,entity_name,node_category,direction,notes,"
    "connect_targets,protocols_supported,data_types_supported"
)


def csv_text(*rows: str) -> str:
    """Build an upload from data lines under the standard header."""
    return "\n".join([CSV_HEADER, *rows])


@pytest.fixture
def sample_csv() -> str:
    """Two valid rows and one row with a bad category."""
    return csv_text(
        'Cloudbeds PMS,https://www.cloudbeds.com/,Cloudbeds Inc,PMS,Supply,'
        '"Cloud PMS, 5000 hotels, integrates with siteminder",'
        '"SiteMinder;Booking.com","PushAPI,Bogus","Availability|Rates"',
        "SiteMinder Channel Manager,siteminder.com,SiteMinder Ltd,CM,Supply Switch,,,,",
        "Mystery,mystery.io,Mystery Co,InvalidType,Supply,,,,",
    )


@pytest.fixture
async def test_engine():
    """Create an async SQLite in-memory engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
def audit_sink(test_session_factory) -> SqlAuditSink:
    return SqlAuditSink(test_session_factory)


@pytest.fixture
def registry(test_session_factory) -> SqlRegistryReader:
    return SqlRegistryReader(test_session_factory)


@pytest.fixture
async def api_client(test_engine, test_session_factory):
    """Async HTTP client hitting the FastAPI app with test DB."""
    # One shared in-memory connection: decisions must not overlap
    settings = Settings(decision_concurrency=1, max_concurrency=4)

    app.dependency_overrides[get_db_factory] = lambda: test_session_factory
    app.dependency_overrides[get_settings] = lambda: settings
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_registry(test_session_factory):
    """One owner's registry: Cloudbeds with its PMS node, and SiteMinder without nodes."""
    async with test_session_factory() as session:
        async with session.begin():
            cloudbeds = Entity(
                id="ent-cloudbeds",
                owner_id=OWNER,
                master_entity_name="Cloudbeds",
                alternate_names=["Cloudbeds Inc"],
                website="cloudbeds.com",
            )
            siteminder = Entity(
                id="ent-siteminder",
                owner_id=OWNER,
                master_entity_name="SiteMinder",
                alternate_names=[],
                website="siteminder.com",
            )
            session.add_all([cloudbeds, siteminder])
            await session.flush()

            session.add(
                Node(
                    id="cloudbeds_pms_abc123",
                    owner_id=OWNER,
                    node_name="Cloudbeds PMS",
                    entity_id=cloudbeds.id,
                    entity_name="Cloudbeds",
                    node_category="PMS",
                    direction="Supply",
                    connects_to=["Expedia"],
                    protocols_supported=["PullAPI"],
                    data_types_supported=["Bookings"],
                    node_aliases=["Cloudbeds Property Management"],
                    website="cloudbeds.com",
                    notes="Existing record",
                    is_active=True,
                )
            )

            # Another tenant's registry must never show up in matches
            session.add(
                Entity(
                    id="ent-foreign",
                    owner_id=OTHER_OWNER,
                    master_entity_name="Cloudbeds",
                    alternate_names=[],
                    website="cloudbeds.com",
                )
            )
