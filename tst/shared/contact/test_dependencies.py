"""Tests for contact store selection."""

import pytest

from src.shared.contact.database import normalize_database_url
from src.shared.contact.dependencies import create_contact_store, get_contact_store
from src.shared.contact.storage import InMemoryContactStore, JsonFileContactStore, SqlContactStore


def test_file_store_is_the_default(monkeypatch, tmp_path):
    monkeypatch.setenv("CONTACTS_DIR", str(tmp_path / "inbox"))

    store = create_contact_store()

    assert isinstance(store, JsonFileContactStore)
    assert store.directory == tmp_path / "inbox"


def test_memory_store(monkeypatch):
    monkeypatch.setenv("CONTACT_STORAGE", "Memory")

    assert isinstance(create_contact_store(), InMemoryContactStore)


def test_database_store(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'contacts.db'}")

    assert isinstance(create_contact_store("database"), SqlContactStore)


def test_database_store_requires_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(ValueError, match="DATABASE_URL"):
        create_contact_store("database")


def test_unknown_backend():
    with pytest.raises(ValueError, match="Unknown CONTACT_STORAGE"):
        create_contact_store("redis")


def test_store_is_created_once(monkeypatch):
    monkeypatch.setenv("CONTACT_STORAGE", "memory")

    assert get_contact_store() is get_contact_store()


def test_heroku_database_url_is_normalized():
    assert normalize_database_url("postgres://u:p@host/db") == "postgresql://u:p@host/db"
    assert normalize_database_url("sqlite:///x.db") == "sqlite:///x.db"
