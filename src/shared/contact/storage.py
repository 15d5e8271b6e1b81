"""
Storage backends for contact submissions.

Every backend implements ContactStore (append, list, remove_by_id) so the
route handlers never touch files or sessions directly. Mutations are
serialized per store instance.
"""

import json
import logging
import os
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.shared.contact.database import ContactSubmissionRecord, create_session_factory, init_db
from src.shared.contact.schemas import ContactSubmission


class PersistenceError(Exception):
    """Storage backend failed to read or write the collection."""


class ContactNotFound(LookupError):
    """No stored submission matches the requested id."""


class MonotonicIdGenerator:
    """
    Time-derived submission ids.
    Returns the current epoch time in milliseconds as a string, bumped by one
    when two ids would otherwise collide within the same millisecond.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = Lock()

    def __call__(self) -> str:
        with self._lock:
            now = int(self._clock() * 1000)
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return str(now)


class ContactStore(ABC):
    """Persisted collection of contact submissions, addressable by id."""

    backend_name = "abstract"

    @abstractmethod
    def append(self, submission: ContactSubmission) -> ContactSubmission:
        """Persist a new submission. Raises PersistenceError on failure or duplicate id."""

    @abstractmethod
    def list(self) -> List[ContactSubmission]:
        """Return every stored submission in insertion order (empty if uninitialized)."""

    @abstractmethod
    def remove_by_id(self, contact_id: str) -> None:
        """Delete one submission. Raises ContactNotFound if absent."""


class InMemoryContactStore(ContactStore):
    """Process-local store, used for tests and CONTACT_STORAGE=memory."""

    backend_name = "memory"

    def __init__(self):
        self._contacts: List[ContactSubmission] = []
        self._lock = Lock()

    def append(self, submission: ContactSubmission) -> ContactSubmission:
        with self._lock:
            if any(c.id == submission.id for c in self._contacts):
                raise PersistenceError(f"Duplicate contact id {submission.id}")
            self._contacts.append(submission)
        return submission

    def list(self) -> List[ContactSubmission]:
        with self._lock:
            return list(self._contacts)

    def remove_by_id(self, contact_id: str) -> None:
        with self._lock:
            remaining = [c for c in self._contacts if c.id != contact_id]
            if len(remaining) == len(self._contacts):
                raise ContactNotFound(contact_id)
            self._contacts = remaining


class JsonFileContactStore(ContactStore):
    """
    File-backed store.

    Layout inside `directory`:
        contact_<id>.json   one file per submission
        contacts_list.json  consolidated listing of all submissions

    Both are rewritten through a temp file and os.replace so readers never see
    a partially written document.
    """

    backend_name = "file"
    LIST_FILENAME = "contacts_list.json"

    def __init__(self, directory):
        self.directory = Path(directory)
        self._lock = Lock()

    @property
    def list_path(self) -> Path:
        return self.directory / self.LIST_FILENAME

    def record_path(self, contact_id: str) -> Path:
        # Ids are generated digits; reject anything that could escape the directory
        if not contact_id or "/" in contact_id or "\\" in contact_id or ".." in contact_id:
            raise ContactNotFound(contact_id)
        return self.directory / f"contact_{contact_id}.json"

    def _ensure_dir(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def _write_json(self, path: Path, data) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=str(self.directory), prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _read_list(self) -> Optional[List[dict]]:
        """Read the listing; None when it has never been written."""
        try:
            with open(self.list_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read {self.list_path}: {str(e)}") from e
        if not isinstance(data, list):
            raise PersistenceError(f"{self.list_path} does not contain a list")
        return data

    def append(self, submission: ContactSubmission) -> ContactSubmission:
        record = submission.model_dump(mode="json")
        with self._lock:
            try:
                self._ensure_dir()
                contacts = self._read_list() or []
                if any(c.get("id") == submission.id for c in contacts):
                    raise PersistenceError(f"Duplicate contact id {submission.id}")

                record_path = self.record_path(submission.id)
                self._write_json(record_path, record)
                contacts.append(record)
                try:
                    self._write_json(self.list_path, contacts)
                except OSError:
                    record_path.unlink(missing_ok=True)
                    raise
            except OSError as e:
                raise PersistenceError(f"Failed to save contact {submission.id}: {str(e)}") from e
        return submission

    def list(self) -> List[ContactSubmission]:
        with self._lock:
            contacts = self._read_list() or []
        try:
            return [ContactSubmission(**c) for c in contacts]
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed entry in {self.list_path}: {str(e)}") from e

    def remove_by_id(self, contact_id: str) -> None:
        with self._lock:
            contacts = self._read_list()
            if contacts is None:
                raise ContactNotFound(contact_id)

            remaining = [c for c in contacts if c.get("id") != contact_id]
            if len(remaining) == len(contacts):
                raise ContactNotFound(contact_id)

            try:
                self._write_json(self.list_path, remaining)
                self.record_path(contact_id).unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"Failed to delete contact {contact_id}: {str(e)}") from e


class SqlContactStore(ContactStore):
    """SQLAlchemy-backed store (PostgreSQL in production, SQLite locally)."""

    backend_name = "database"

    def __init__(self, engine):
        self.engine = engine
        self.SessionLocal = create_session_factory(engine)
        init_db(engine)

    def append(self, submission: ContactSubmission) -> ContactSubmission:
        db = self.SessionLocal()
        try:
            db.add(ContactSubmissionRecord(**submission.model_dump(mode="json")))
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise PersistenceError(f"Duplicate contact id {submission.id}") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to save contact {submission.id}: {str(e)}") from e
        finally:
            db.close()
        return submission

    def list(self) -> List[ContactSubmission]:
        db = self.SessionLocal()
        try:
            rows = db.query(ContactSubmissionRecord).order_by(ContactSubmissionRecord.seq).all()
            return [
                ContactSubmission(
                    id=row.id,
                    name=row.name,
                    email=row.email,
                    subject=row.subject,
                    message=row.message,
                    timestamp=row.timestamp,
                    status=row.status,
                )
                for row in rows
            ]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list contacts: {str(e)}") from e
        finally:
            db.close()

    def remove_by_id(self, contact_id: str) -> None:
        db = self.SessionLocal()
        try:
            deleted = db.query(ContactSubmissionRecord).filter(
                ContactSubmissionRecord.id == contact_id
            ).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to delete contact {contact_id}: {str(e)}") from e
        finally:
            db.close()

        if not deleted:
            raise ContactNotFound(contact_id)
        logging.info(f"Deleted contact {contact_id} from database")
