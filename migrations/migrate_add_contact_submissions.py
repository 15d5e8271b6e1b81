#!/usr/bin/env python3
"""Migration script to add the contact_submissions table and import file-stored submissions."""

import json
import os
import sys
from pathlib import Path
from sqlalchemy import create_engine, inspect

# Load environment variables
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass

from src.shared.contact.database import Base, ContactSubmissionRecord, normalize_database_url, create_session_factory

DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    print("ERROR: DATABASE_URL environment variable is required.")
    sys.exit(1)

engine = create_engine(normalize_database_url(DATABASE_URL))


def table_exists(connection, table_name):
    """Check if a table exists."""
    inspector = inspect(connection)
    return table_name in inspector.get_table_names()


def import_contacts_list(list_path: Path) -> int:
    """Copy submissions from a contacts_list.json into the table, skipping ids already present."""
    if not list_path.is_file():
        print(f"✓ No file collection at {list_path}, nothing to import.")
        return 0

    with open(list_path, "r", encoding="utf-8") as f:
        contacts = json.load(f)

    SessionLocal = create_session_factory(engine)
    db = SessionLocal()
    imported = 0
    try:
        existing_ids = {row[0] for row in db.query(ContactSubmissionRecord.id).all()}
        for contact in contacts:
            if contact.get("id") in existing_ids:
                continue
            db.add(ContactSubmissionRecord(
                id=contact["id"],
                name=contact["name"],
                email=contact["email"],
                subject=contact["subject"],
                message=contact["message"],
                timestamp=contact["timestamp"],
                status=contact.get("status", "new"),
            ))
            existing_ids.add(contact["id"])
            imported += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    return imported


def run_migration():
    print("Running migration to add contact_submissions table...")
    print(f"Database: {engine.url.host}:{engine.url.port}/{engine.url.database}")

    with engine.connect() as connection:
        if not table_exists(connection, "contact_submissions"):
            print("Creating contact_submissions table...")
            Base.metadata.create_all(bind=connection, checkfirst=True)
            connection.commit()
            print("✓ Successfully created contact_submissions table.")
        else:
            print("✓ Table 'contact_submissions' already exists.")

    list_path = Path(os.environ.get("CONTACTS_DIR", "contacts")) / "contacts_list.json"
    imported = import_contacts_list(list_path)
    print(f"✓ Imported {imported} submission(s) from {list_path}.")

    print("\n✓ Migration completed successfully!")


if __name__ == "__main__":
    run_migration()
