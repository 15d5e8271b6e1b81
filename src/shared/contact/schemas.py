"""Pydantic schemas for contact API."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContactStatus(str, Enum):
    """Lifecycle status of a contact submission."""
    NEW = "new"


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ContactRequest(BaseModel):
    """
    Schema for contact form submission.
    Fields are optional here so a missing field yields the uniform
    "All fields are required" response instead of a 422.
    """
    name: Optional[str] = Field(None, description="Your name")
    email: Optional[str] = Field(None, description="Your email address")
    subject: Optional[str] = Field(None, description="Message subject")
    message: Optional[str] = Field(None, description="Your message (at least 10 characters)")
    timestamp: Optional[str] = Field(None, description="Client-side submission time (ISO-8601)")


class ContactSubmission(BaseModel):
    """A persisted contact form submission."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str
    name: str
    email: str
    subject: str
    message: str
    timestamp: str
    status: ContactStatus = ContactStatus.NEW


class ContactResponse(BaseModel):
    """Schema for contact form response."""
    success: bool
    message: str
    id: str


class MessageResponse(BaseModel):
    """Generic success/failure response."""
    success: bool
    message: str


class ContactListResponse(BaseModel):
    """Schema for listing stored submissions."""
    success: bool
    contacts: List[ContactSubmission]


class HealthResponse(BaseModel):
    """Schema for the liveness check."""
    success: bool
    message: str
    timestamp: str
