# This project was developed with assistance from AI tools.
"""Fixtures for functional tests.

Each test gets a fresh app built from development settings, so CSRF is
enforced exactly as in a deployed server. The database is an in-memory user
store shared by every request the test makes; audit entries go to the
recording service from the parent conftest.
"""

import pytest
from db import User
from db.enums import UserRole
from fastapi.testclient import TestClient

from src.services.users import hash_password

from ..conftest import build_settings
from .mock_db import InMemoryUserSession


@pytest.fixture
def store() -> InMemoryUserSession:
    return InMemoryUserSession()


@pytest.fixture
def dev_settings():
    return build_settings(ENVIRONMENT="development")


@pytest.fixture
def browser(make_app, store, dev_settings):
    """Factory fixture: a cookie-carrying client, optionally with other settings."""

    def _make(settings=None) -> TestClient:
        return TestClient(make_app(settings or dev_settings, store), follow_redirects=False)

    return _make


@pytest.fixture
def csrf_headers(dev_settings):
    """Fetch a CSRF token for ``client`` and return the header to echo it."""

    def _headers(client: TestClient) -> dict:
        token = client.get("/api/csrf-token").json()["csrfToken"]
        return {dev_settings.CSRF_HEADER_NAME: token}

    return _headers


@pytest.fixture
def existing_admin(store):
    """A local ADMIN account with a known password."""
    return store.put(
        User(
            email="admin@tms.example.com",
            name="Ada Admin",
            role=UserRole.ADMIN,
            password_hash=hash_password("Adm1n-Passw0rd!"),
        )
    )
