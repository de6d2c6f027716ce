import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import src.domain  # noqa: F401
from src.adapter.repositories.catalog_repository import SqlAlchemyCatalogRepository
from src.adapter.services.payment_gateway import LocalPaymentGateway
from src.app.services.account_lock import AccountLocks
from src.depends import get_session, get_account_locks, get_payment_gateway, get_service_api_key

SERVICE_API_KEY = "svc_test"

CATALOG_PLANS = [
    {"id": "free", "name": "free", "display_name": "Free", "monthly_credits": 0, "price_in_cents": 0},
    {"id": "basic", "name": "basic", "display_name": "Basic", "monthly_credits": 100,
     "price_in_cents": 19900, "provider_plan_ref": "plan_basic"},
    {"id": "pro", "name": "pro", "display_name": "Pro", "monthly_credits": 500,
     "price_in_cents": 49900, "provider_plan_ref": "plan_pro"},
]
CATALOG_PRODUCTS = [
    {"id": "pack_100", "credits": 100, "price_in_cents": 9900},
    {"id": "pack_500", "credits": 500, "price_in_cents": 44900},
]
CATALOG_FEATURES = [
    {"feature_code": "story_export", "display_name": "Story export", "credit_cost": 10},
    {"feature_code": "image_generation", "display_name": "Image generation", "credit_cost": 5},
]


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite database so several sessions see the same data"""
    test_db_url = f"sqlite+aiosqlite:///{tmp_path / 'wallet_test.db'}"

    engine = create_async_engine(test_db_url, echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Session with the catalog already seeded"""
    async with session_factory() as session:
        await SqlAlchemyCatalogRepository(session).upsert_reference_data(
            plans=CATALOG_PLANS,
            products=CATALOG_PRODUCTS,
            features=CATALOG_FEATURES,
        )
        await session.commit()
        yield session


@pytest.fixture
def locks():
    return AccountLocks()


@pytest.fixture
def gateway():
    return LocalPaymentGateway(key_id="key_test", key_secret="secret_test", webhook_secret="whsec_test")


@pytest_asyncio.fixture
async def client(db_session, session_factory, locks, gateway):
    """Create test client; every request gets its own session on the test database"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_account_locks] = lambda: locks
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_service_api_key] = lambda: SERVICE_API_KEY

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
