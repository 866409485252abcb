"""Pytest configuration and fixtures."""

import os
import secrets
import tempfile

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("KAHRABA_DATA_DIR", tempfile.mkdtemp(prefix="kahraba-api-test-"))

from app.database import build_marketplace, get_marketplace  # noqa: E402
from app.main import app  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from kahraba.storage import InMemoryStorage  # noqa: E402


@pytest.fixture
def market():
    """Services over in-memory storage."""
    return build_marketplace(InMemoryStorage())


@pytest.fixture
def client(market):
    """Create a test client wired to the in-memory marketplace."""
    app.dependency_overrides[get_marketplace] = lambda: market
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _headers(actor_id: str, role: str, name: str | None = None) -> dict:
    from app.auth import create_access_token
    from app.config import get_settings

    token = create_access_token(actor_id, role, get_settings(), name=name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_headers():
    """Factory for auth headers: make_headers("c1", "customer")."""
    return _headers


@pytest.fixture
def customer_headers():
    return _headers("cust_TEST_1", "customer", name="Lina")


@pytest.fixture
def electrician_headers():
    return _headers("elec_TEST_1", "electrician", name="Omar")


@pytest.fixture
def admin_headers():
    return _headers("admin_TEST_1", "admin")
