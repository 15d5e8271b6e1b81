"""
Contact form client.

Holds the form state, validates it with the same rules the service enforces,
posts it as JSON and turns the response into an outcome. UI code subscribes to
events with `on()` and renders them; this module never renders anything.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Union

import httpx

from src.shared.contact.input_validation import (
    FIELD_ERROR_MESSAGES,
    REQUIRED_FIELDS,
    ContactValidationError,
    collect_field_errors,
    validate_field as validate_contact_field,
)
from src.shared.contact.schemas import utc_timestamp

DEFAULT_API_URL = "http://localhost:3001/contact"
DEFAULT_TIMEOUT = 10.0

DEFAULT_REJECTION_MESSAGE = "Failed to send message"
TRANSPORT_ERROR_MESSAGE = "There was an error sending your message. Please try again."
DEFAULT_SUCCESS_MESSAGE = "Message sent successfully!"

EVENTS = (
    "submitting",
    "submitted",
    "validation_failed",
    "rejected",
    "transport_error",
    "field_error",
    "notice",
)


class ErrorDisplay(str, Enum):
    """Where errors are surfaced: next to the offending field, or as one notice."""
    INLINE = "inline"
    NOTICE = "notice"


@dataclass(frozen=True)
class Submitted:
    id: str
    message: str = DEFAULT_SUCCESS_MESSAGE


@dataclass(frozen=True)
class ValidationFailed:
    message: str
    field_errors: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoteRejected:
    message: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class TransportError:
    message: str = TRANSPORT_ERROR_MESSAGE


Outcome = Union[Submitted, ValidationFailed, RemoteRejected, TransportError]


class SubmissionInProgress(RuntimeError):
    """submit() was called while an earlier submission is still in flight."""


@dataclass
class ContactForm:
    name: str = ""
    email: str = ""
    subject: str = ""
    message: str = ""

    def values(self) -> Dict[str, str]:
        return {f: getattr(self, f) for f in REQUIRED_FIELDS}

    def set(self, field_name: str, value: str) -> None:
        if field_name not in REQUIRED_FIELDS:
            raise ValueError(f"Unknown contact field: {field_name}")
        setattr(self, field_name, value if value is not None else "")

    def clear(self) -> None:
        for f in REQUIRED_FIELDS:
            setattr(self, f, "")


class ContactFormClient:
    """
    Single submission path for the contact form.

    Args:
        api_url: Absolute URL of the service's POST /contact route
        http_client: Optional shared httpx.AsyncClient; a short-lived one is
            created per submission otherwise
        error_display: ErrorDisplay.INLINE or ErrorDisplay.NOTICE
        timeout: Request timeout in seconds for the short-lived client
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        error_display: ErrorDisplay = ErrorDisplay.INLINE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.api_url = api_url
        self.http_client = http_client
        self.error_display = ErrorDisplay(error_display)
        self.timeout = timeout

        self.form = ContactForm()
        self.field_errors: Dict[str, str] = {}
        self.notice: Optional[str] = None
        self.submitting = False
        self.last_outcome: Optional[Outcome] = None
        self._listeners: Dict[str, List[Callable]] = {event: [] for event in EVENTS}

    # Event subscription

    def on(self, event: str, callback: Callable) -> Callable[[], None]:
        """Subscribe to an event. Returns a function that removes the subscription."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event '{event}'. Expected one of: {', '.join(EVENTS)}")
        self._listeners[event].append(callback)

        def unsubscribe():
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        return unsubscribe

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception as e:
                logging.error(f"Contact form '{event}' listener failed: {str(e)}", exc_info=True)

    # Field-level state

    def set_field(self, field_name: str, value: str) -> None:
        """Update a field value and clear its inline error (typing into the field)."""
        self.form.set(field_name, value)
        self.field_errors.pop(field_name, None)

    def validate_field(self, field_name: str) -> Optional[str]:
        """
        Validate one field as the user leaves it.
        An empty field is not flagged until the whole form is submitted.
        Returns the error message, or None when the field is acceptable.
        """
        if field_name not in REQUIRED_FIELDS:
            raise ValueError(f"Unknown contact field: {field_name}")
        value = getattr(self.form, field_name)

        if not value.strip():
            self.field_errors.pop(field_name, None)
            return None

        try:
            validate_contact_field(field_name, value)
        except ContactValidationError as e:
            if self.error_display == ErrorDisplay.INLINE:
                self._show_field_error(field_name, e.message)
            return e.message

        self.field_errors.pop(field_name, None)
        return None

    def clear_errors(self) -> None:
        self.field_errors = {}
        self.notice = None

    def _show_field_error(self, field_name: str, message: str) -> None:
        self.field_errors[field_name] = message
        self._emit("field_error", field_name, message)

    def _show_notice(self, message: str) -> None:
        self.notice = message
        self._emit("notice", message)

    # Submission

    async def submit(self, fields: Optional[Mapping[str, str]] = None) -> Outcome:
        """
        Validate and send the form once.

        Raises:
            SubmissionInProgress if a previous submit() has not resolved yet
        """
        if self.submitting:
            raise SubmissionInProgress("A contact submission is already in flight")

        self.submitting = True
        try:
            if fields:
                for field_name, value in fields.items():
                    self.form.set(field_name, value)
            self.clear_errors()
            self._emit("submitting")

            outcome = await self._validate_and_send()
            self.last_outcome = outcome
            self._present(outcome)
            return outcome
        finally:
            self.submitting = False

    async def _validate_and_send(self) -> Outcome:
        values = self.form.values()
        errors = collect_field_errors(values)
        if errors:
            return ValidationFailed(message=next(iter(errors.values())), field_errors=errors)

        payload = dict(values, timestamp=utc_timestamp())
        try:
            if self.http_client is not None:
                response = await self.http_client.post(self.api_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, json=payload)
        except httpx.HTTPError as e:
            logging.warning(f"Contact submission failed to reach {self.api_url}: {str(e)}")
            return TransportError()

        return self._interpret_response(response)

    def _interpret_response(self, response: httpx.Response) -> Outcome:
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            logging.warning(f"Contact service returned a malformed body (status {response.status_code})")
            return TransportError()

        # Server-side failures are not actionable by the sender
        if response.is_server_error:
            return RemoteRejected(message=TRANSPORT_ERROR_MESSAGE, status_code=response.status_code)

        if not response.is_success or not body.get("success"):
            return RemoteRejected(
                message=body.get("message") or DEFAULT_REJECTION_MESSAGE,
                status_code=response.status_code,
            )

        return Submitted(
            id=str(body.get("id", "")),
            message=body.get("message") or DEFAULT_SUCCESS_MESSAGE,
        )

    def _present(self, outcome: Outcome) -> None:
        if isinstance(outcome, Submitted):
            self.form.clear()
            self.clear_errors()
            self._emit("submitted", outcome)
            return

        if isinstance(outcome, ValidationFailed):
            if self.error_display == ErrorDisplay.INLINE:
                for field_name, message in outcome.field_errors.items():
                    self._show_field_error(field_name, message)
            else:
                self._show_notice(outcome.message)
            self._emit("validation_failed", outcome)
            return

        if isinstance(outcome, RemoteRejected):
            # Server-side rule failures carry the same text as the local rules
            field_name = _field_for_message(outcome.message)
            if field_name and self.error_display == ErrorDisplay.INLINE:
                self._show_field_error(field_name, outcome.message)
            else:
                self._show_notice(outcome.message)
            self._emit("rejected", outcome)
            return

        self._show_notice(outcome.message)
        self._emit("transport_error", outcome)


def _field_for_message(message: str) -> Optional[str]:
    for field_name, rule_message in FIELD_ERROR_MESSAGES.items():
        if rule_message == message:
            return field_name
    return None
