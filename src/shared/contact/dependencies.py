"""Contact API dependencies: storage selection and admin access."""

import logging
import os
from threading import Lock
from typing import Optional

from fastapi import Header, HTTPException, status

from src.shared.contact.database import create_contact_engine
from src.shared.contact.storage import (
    ContactStore,
    InMemoryContactStore,
    JsonFileContactStore,
    SqlContactStore,
)

_contact_store: Optional[ContactStore] = None
_contact_store_lock = Lock()


def create_contact_store(backend: str = None) -> ContactStore:
    """
    Build the store selected by CONTACT_STORAGE.

    Args:
        backend: 'file', 'database' or 'memory'; defaults to CONTACT_STORAGE (or 'file')

    Raises:
        ValueError for an unknown backend or a database backend without DATABASE_URL
    """
    backend = (backend or os.environ.get("CONTACT_STORAGE", "file")).strip().lower()

    if backend == "file":
        return JsonFileContactStore(os.environ.get("CONTACTS_DIR", "contacts"))
    if backend == "database":
        return SqlContactStore(create_contact_engine())
    if backend == "memory":
        return InMemoryContactStore()

    raise ValueError(
        f"Unknown CONTACT_STORAGE '{backend}'. Expected one of: file, database, memory."
    )


def get_contact_store() -> ContactStore:
    """Dependency returning the process-wide contact store, created on first use."""
    global _contact_store
    if _contact_store is None:
        with _contact_store_lock:
            if _contact_store is None:
                _contact_store = create_contact_store()
                logging.info(f"Contact storage backend: {_contact_store.backend_name}")
    return _contact_store


def reset_contact_store() -> None:
    """Drop the cached store so the next request rebuilds it from the environment."""
    global _contact_store
    with _contact_store_lock:
        _contact_store = None


def verify_admin_secret(
    x_admin_secret: Optional[str] = Header(None, alias="X-Admin-Secret"),
) -> None:
    """
    Guard for the submission listing and deletion routes.

    When ADMIN_SECRET is unset the routes stay open. When it is set, the
    request must carry a matching X-Admin-Secret header.
    """
    admin_secret = os.environ.get("ADMIN_SECRET")

    if not admin_secret:
        return

    if not x_admin_secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "success": False,
                "message": "Admin secret required. Provide X-Admin-Secret header.",
            },
        )

    if x_admin_secret != admin_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"success": False, "message": "Invalid admin secret"},
        )
