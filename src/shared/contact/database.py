"""Database setup and models for stored contact submissions."""

import os
from datetime import datetime, timezone

from sqlalchemy import create_engine, Column, String, Text, DateTime, Integer, Index
from sqlalchemy.orm import declarative_base, sessionmaker

# Load environment variables from .env file (for local development)
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # python-dotenv not installed, skip (fine for production)

Base = declarative_base()


class ContactSubmissionRecord(Base):
    """Contact form submission row."""
    __tablename__ = "contact_submissions"

    # Insertion order; ids are time-derived strings and are not compared numerically
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(String, nullable=False)  # ISO-8601 as supplied by client or service
    status = Column(String, default="new", nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('idx_contact_submissions_created_at', 'created_at'),
    )


def normalize_database_url(database_url: str) -> str:
    """Heroku uses postgres:// but SQLAlchemy 2.0+ requires postgresql://"""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def create_contact_engine(database_url: str = None):
    """
    Create the SQLAlchemy engine for the contact store.

    Args:
        database_url: Connection string; defaults to DATABASE_URL

    Raises:
        ValueError if no database URL is configured
    """
    database_url = database_url or os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError(
            "DATABASE_URL environment variable is required when CONTACT_STORAGE=database. "
            "Please set it to your database connection string."
        )
    database_url = normalize_database_url(database_url)

    engine_kwargs = {}
    if not database_url.startswith("sqlite"):
        engine_kwargs = {
            "pool_pre_ping": True,  # Verify connections before using
            "pool_recycle": 3600,  # Recycle connections after 1 hour
        }
    return create_engine(database_url, **engine_kwargs)


def create_session_factory(engine):
    """Session factory bound to the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine) -> None:
    """Initialize contact tables."""
    Base.metadata.create_all(bind=engine, checkfirst=True)
