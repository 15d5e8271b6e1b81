"""Contact routes for receiving, listing and deleting contact form submissions."""

import os
import time
import logging
from collections import deque
from threading import Lock

from fastapi import APIRouter, HTTPException, status, Depends, Request

from src.shared.contact.schemas import (
    ContactRequest,
    ContactResponse,
    ContactListResponse,
    ContactSubmission,
    MessageResponse,
    ContactStatus,
    utc_timestamp,
)
from src.shared.contact.input_validation import (
    ContactValidationError,
    missing_fields,
    validate_contact_fields,
    validate_timestamp,
)
from src.shared.contact.storage import (
    ContactStore,
    ContactNotFound,
    MonotonicIdGenerator,
    PersistenceError,
)
from src.shared.contact.dependencies import get_contact_store, verify_admin_secret

router = APIRouter(tags=["contact"])

generate_contact_id = MonotonicIdGenerator()

INTERNAL_ERROR = {"success": False, "message": "Internal server error"}

# Rate limiting configuration (disabled unless CONTACT_RATE_LIMIT_MAX > 0)
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 3600
_contact_rate_limit_store = {}
_contact_rate_limit_lock = Lock()


def get_client_ip(request: Request) -> str:
    """Get client IP address for rate limiting."""
    # Check for forwarded IP (from proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _prune_rate_limits(cutoff: float) -> None:
    """Drop expired request times, and the IPs left with none. Caller holds the lock."""
    for client_ip in list(_contact_rate_limit_store):
        request_times = _contact_rate_limit_store[client_ip]
        while request_times and request_times[0] <= cutoff:
            request_times.popleft()
        if not request_times:
            _contact_rate_limit_store.pop(client_ip, None)


def check_rate_limit(client_ip: str) -> None:
    """Enforces a sliding-window limit on submissions per client IP."""
    max_requests = int(os.environ.get("CONTACT_RATE_LIMIT_MAX", "0"))
    if max_requests <= 0:
        return
    window = int(os.environ.get("CONTACT_RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS))

    now = time.time()
    with _contact_rate_limit_lock:
        _prune_rate_limits(now - window)
        request_times = _contact_rate_limit_store.setdefault(client_ip, deque())
        if len(request_times) >= max_requests:
            logging.warning(f"Contact rate limit exceeded for {client_ip}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "success": False,
                    "message": "Too many messages. Please wait before sending another message.",
                },
            )
        request_times.append(now)


def reset_rate_limits() -> None:
    with _contact_rate_limit_lock:
        _contact_rate_limit_store.clear()


@router.post("/contact", response_model=ContactResponse, status_code=status.HTTP_200_OK)
def submit_contact_form(
    contact_data: ContactRequest,
    request: Request,
    store: ContactStore = Depends(get_contact_store),
):
    """
    Store a contact form submission.

    - All four fields are required
    - Fields must pass the same rules the contact form enforces
    - Timestamp defaults to receipt time when the client omits it
    """
    fields = contact_data.model_dump()
    if missing_fields(fields):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "message": "All fields are required"},
        )

    try:
        cleaned = validate_contact_fields(fields)
        timestamp = validate_timestamp(contact_data.timestamp)
    except ContactValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "message": e.message},
        )

    check_rate_limit(get_client_ip(request))

    submission = ContactSubmission(
        id=generate_contact_id(),
        timestamp=timestamp or utc_timestamp(),
        status=ContactStatus.NEW,
        **cleaned,
    )

    try:
        store.append(submission)
    except PersistenceError as e:
        logging.error(f"Error saving contact: {str(e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)

    logging.info(f"Contact {submission.id} received from {submission.email}")
    return ContactResponse(success=True, message="Message sent successfully!", id=submission.id)


@router.get(
    "/contacts",
    response_model=ContactListResponse,
    dependencies=[Depends(verify_admin_secret)],
)
def list_contacts(store: ContactStore = Depends(get_contact_store)):
    """Get all stored contact submissions (for admin purposes)."""
    try:
        contacts = store.list()
    except PersistenceError as e:
        logging.error(f"Error listing contacts: {str(e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)
    return ContactListResponse(success=True, contacts=contacts)


@router.delete(
    "/contacts/{contact_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_admin_secret)],
)
def delete_contact(contact_id: str, store: ContactStore = Depends(get_contact_store)):
    """Delete a stored contact submission by id."""
    try:
        store.remove_by_id(contact_id)
    except ContactNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"success": False, "message": "Contact not found"},
        )
    except PersistenceError as e:
        logging.error(f"Error deleting contact: {str(e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)

    logging.info(f"Contact {contact_id} deleted")
    return MessageResponse(success=True, message="Contact deleted successfully")
