import httpx
import pytest

from app.core.config import settings
from app.database import init_database, close_database, create_tables
from app.middleware.auth_middleware import get_current_user
from app.models.auth import AuthenticatedUser

TEST_USER = AuthenticatedUser(id="user-123", email="alice@gmail.com")


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Deterministic settings for every test"""
    values = {
        "ENVIRONMENT": "test",
        "DEV_MODE": False,
        "SITE_URL": "https://modelcast.test",
        "FASHN_ENABLED": True,
        "FASHN_API_KEY": "fashn-test-key",
        "FASHN_API_BASE": "https://fashn.test/v1",
        "FASHN_POLL_INTERVAL_SECONDS": 0,
        "STRIPE_SECRET_KEY": "sk_test_123",
        "STRIPE_WEBHOOK_SECRET": "whsec_test",
        "STRIPE_PRICE_PRO_ID": "price_pro",
        "STRIPE_PRICE_STUDIO_ID": "price_studio",
        "CLOUDINARY_CLOUD_NAME": "demo-cloud",
        "CLOUDINARY_API_KEY": "cloud-key",
        "CLOUDINARY_API_SECRET": "cloud-secret",
        "CRON_SECRET": "cron-secret",
    }
    for key, value in values.items():
        monkeypatch.setattr(settings, key, value)
    return settings


@pytest.fixture
async def database():
    """Fresh in-memory SQLite database"""
    await init_database("sqlite+aiosqlite:///:memory:", test_connection=False)
    await create_tables()
    yield
    await close_database()


@pytest.fixture
def current_user():
    return TEST_USER


@pytest.fixture
async def client(current_user):
    """API client with authentication resolved to the test user"""
    from main import app

    app.dependency_overrides[get_current_user] = lambda: current_user
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as api_client:
        yield api_client
    app.dependency_overrides.clear()


@pytest.fixture
async def anonymous_client():
    from main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as api_client:
        yield api_client
