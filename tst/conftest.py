"""Shared test fixtures for the portfolio service."""

import pytest
from fastapi.testclient import TestClient

from src.app import app
from src.shared.contact.dependencies import get_contact_store, reset_contact_store
from src.shared.contact.routes import reset_rate_limits
from src.shared.contact.storage import InMemoryContactStore

VALID_CONTACT = {
    "name": "Jo",
    "email": "a@b.com",
    "subject": "Hello there",
    "message": "This is a test message.",
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Each test starts with admin checks and rate limiting disabled."""
    for name in ("ADMIN_SECRET", "CONTACT_RATE_LIMIT_MAX", "CONTACT_RATE_LIMIT_WINDOW_SECONDS", "CONTACT_STORAGE"):
        monkeypatch.delenv(name, raising=False)
    reset_rate_limits()
    reset_contact_store()
    yield
    reset_rate_limits()
    reset_contact_store()


@pytest.fixture
def memory_store():
    return InMemoryContactStore()


@pytest.fixture
def use_store():
    """Route requests to the given store for the duration of a test."""
    def _use(store):
        app.dependency_overrides[get_contact_store] = lambda: store
        return store

    yield _use
    app.dependency_overrides.pop(get_contact_store, None)


@pytest.fixture
def client(use_store, memory_store):
    use_store(memory_store)
    return TestClient(app)


@pytest.fixture
def valid_contact():
    return dict(VALID_CONTACT)
