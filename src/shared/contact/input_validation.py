"""
Contact form validation rules.
Shared by the submission service and the contact form client so both enforce
the same field constraints with the same messages.
"""

import re
from datetime import datetime
from typing import Dict, Mapping, Optional


REQUIRED_FIELDS = ("name", "email", "subject", "message")

MIN_NAME_LENGTH = 2
MIN_SUBJECT_LENGTH = 5
MIN_MESSAGE_LENGTH = 10

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

NAME_ERROR = f"Name must be at least {MIN_NAME_LENGTH} characters long"
EMAIL_ERROR = "Please enter a valid email address"
SUBJECT_ERROR = f"Subject must be at least {MIN_SUBJECT_LENGTH} characters long"
MESSAGE_ERROR = f"Message must be at least {MIN_MESSAGE_LENGTH} characters long"
TIMESTAMP_ERROR = "Timestamp must be an ISO-8601 date and time"

FIELD_ERROR_MESSAGES = {
    "name": NAME_ERROR,
    "email": EMAIL_ERROR,
    "subject": SUBJECT_ERROR,
    "message": MESSAGE_ERROR,
}


class ContactValidationError(ValueError):
    """A contact field failed one of the validation rules."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def validate_name(name: Optional[str]) -> str:
    """
    Validate a sender name.

    Returns:
        Trimmed name

    Raises:
        ContactValidationError if the trimmed name is too short
    """
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ContactValidationError("name", NAME_ERROR)
    return name


def validate_email(email: Optional[str]) -> str:
    """
    Validate email address format.

    Returns:
        Normalized email (trimmed, lowercase)

    Raises:
        ContactValidationError if the address is not local@domain.tld shaped
    """
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ContactValidationError("email", EMAIL_ERROR)
    return email


def validate_subject(subject: Optional[str]) -> str:
    """Validate a subject line. Returns the trimmed subject."""
    subject = (subject or "").strip()
    if len(subject) < MIN_SUBJECT_LENGTH:
        raise ContactValidationError("subject", SUBJECT_ERROR)
    return subject


def validate_message(message: Optional[str]) -> str:
    """Validate a message body. Returns the trimmed message."""
    message = (message or "").strip()
    if len(message) < MIN_MESSAGE_LENGTH:
        raise ContactValidationError("message", MESSAGE_ERROR)
    return message


def validate_timestamp(timestamp: Optional[str]) -> Optional[str]:
    """
    Validate an optional client-supplied timestamp.

    Returns:
        Trimmed timestamp, or None when absent or blank

    Raises:
        ContactValidationError if the value is not ISO-8601
    """
    timestamp = (timestamp or "").strip()
    if not timestamp:
        return None
    # fromisoformat only accepts a Z suffix from Python 3.11 on
    candidate = timestamp[:-1] + "+00:00" if timestamp.endswith(("Z", "z")) else timestamp
    try:
        datetime.fromisoformat(candidate)
    except ValueError:
        raise ContactValidationError("timestamp", TIMESTAMP_ERROR)
    return timestamp


FIELD_VALIDATORS = {
    "name": validate_name,
    "email": validate_email,
    "subject": validate_subject,
    "message": validate_message,
}


def validate_field(field: str, value: Optional[str]) -> str:
    """Run the rule for a single field and return its normalized value."""
    try:
        validator = FIELD_VALIDATORS[field]
    except KeyError:
        raise ValueError(f"Unknown contact field: {field}")
    return validator(value)


def collect_field_errors(fields: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """
    Run every field rule and collect the failures.

    Args:
        fields: Mapping of field name to raw value

    Returns:
        Dict of field name to error message, in field order (empty if valid)
    """
    errors = {}
    for field in REQUIRED_FIELDS:
        try:
            validate_field(field, fields.get(field))
        except ContactValidationError as e:
            errors[field] = e.message
    return errors


def missing_fields(fields: Mapping[str, Optional[str]]) -> list:
    """Return the required fields that are absent, null, or blank."""
    return [
        field for field in REQUIRED_FIELDS
        if not isinstance(fields.get(field), str) or not fields.get(field).strip()
    ]


def validate_contact_fields(fields: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """
    Validate and normalize all contact fields.

    Returns:
        Dict with normalized name, email, subject and message

    Raises:
        ContactValidationError for the first failing field
    """
    return {field: validate_field(field, fields.get(field)) for field in REQUIRED_FIELDS}
