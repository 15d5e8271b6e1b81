"""Tests for the contact form client."""

import json

import anyio
import httpx
import pytest

from src.app import app
from src.client.contact_form import (
    ContactFormClient,
    ErrorDisplay,
    RemoteRejected,
    SubmissionInProgress,
    Submitted,
    TransportError,
    ValidationFailed,
)

pytestmark = pytest.mark.anyio

API_URL = "http://portfolio.test/contact"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests = []

        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


def respond(status_code=200, **kwargs):
    return lambda request: httpx.Response(status_code, **kwargs)


def ok_response():
    return respond(200, json={"success": True, "message": "Message sent successfully!", "id": "1714564800000"})


@pytest.fixture
def make_client():
    def _make(handler, **kwargs):
        transport = RecordingTransport(handler)
        http_client = httpx.AsyncClient(transport=transport)
        form_client = ContactFormClient(api_url=API_URL, http_client=http_client, **kwargs)
        return form_client, transport

    return _make


class TestSubmit:

    async def test_valid_submission(self, make_client, valid_contact):
        form_client, transport = make_client(ok_response())
        submitted = []
        form_client.on("submitted", submitted.append)

        outcome = await form_client.submit(valid_contact)

        assert outcome == Submitted(id="1714564800000", message="Message sent successfully!")
        assert submitted == [outcome]
        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == API_URL
        payload = json.loads(request.content)
        assert {k: payload[k] for k in valid_contact} == valid_contact
        assert payload["timestamp"].endswith("Z")

    async def test_success_clears_form(self, make_client, valid_contact):
        form_client, _ = make_client(ok_response())

        await form_client.submit(valid_contact)

        assert form_client.form.values() == {"name": "", "email": "", "subject": "", "message": ""}
        assert form_client.field_errors == {}
        assert form_client.notice is None
        assert form_client.submitting is False

    async def test_invalid_input_never_reaches_network(self, make_client):
        form_client, transport = make_client(ok_response())

        outcome = await form_client.submit({
            "name": "Jo",
            "email": "bad-email",
            "subject": "Hi",
            "message": "short",
        })

        assert isinstance(outcome, ValidationFailed)
        assert outcome.message == "Please enter a valid email address"
        assert set(outcome.field_errors) == {"email", "subject", "message"}
        assert transport.requests == []

    async def test_inline_display_marks_each_field(self, make_client):
        form_client, _ = make_client(ok_response())
        field_errors = []
        form_client.on("field_error", lambda field, message: field_errors.append(field))

        await form_client.submit({"name": "Jo", "email": "a@b.com", "subject": "Hi", "message": "short"})

        assert field_errors == ["subject", "message"]
        assert form_client.field_errors == {
            "subject": "Subject must be at least 5 characters long",
            "message": "Message must be at least 10 characters long",
        }
        assert form_client.notice is None
        # Values stay in place so the user can correct them
        assert form_client.form.name == "Jo"

    async def test_notice_display_raises_single_notice(self, make_client):
        form_client, _ = make_client(ok_response(), error_display=ErrorDisplay.NOTICE)
        notices = []
        form_client.on("notice", notices.append)

        await form_client.submit({"name": "J", "email": "a@b.com", "subject": "Hello there", "message": "short"})

        assert notices == ["Name must be at least 2 characters long"]
        assert form_client.field_errors == {}

    async def test_server_rejection_prefers_server_message(self, make_client, valid_contact):
        form_client, _ = make_client(respond(400, json={"success": False, "message": "All fields are required"}))
        rejected = []
        form_client.on("rejected", rejected.append)

        outcome = await form_client.submit(valid_contact)

        assert outcome == RemoteRejected(message="All fields are required", status_code=400)
        assert rejected == [outcome]
        assert form_client.notice == "All fields are required"

    async def test_server_rule_failure_shown_on_field(self, make_client, valid_contact):
        form_client, _ = make_client(
            respond(400, json={"success": False, "message": "Please enter a valid email address"})
        )

        await form_client.submit(valid_contact)

        assert form_client.field_errors == {"email": "Please enter a valid email address"}
        assert form_client.notice is None

    async def test_success_flag_false_is_rejection(self, make_client, valid_contact):
        form_client, _ = make_client(respond(200, json={"success": False}))

        outcome = await form_client.submit(valid_contact)

        assert outcome == RemoteRejected(message="Failed to send message", status_code=200)
        assert form_client.form.name == "Jo"

    async def test_error_status_without_json_is_transport_error(self, make_client, valid_contact):
        form_client, _ = make_client(respond(502, text="<html>Bad Gateway</html>"))

        outcome = await form_client.submit(valid_contact)

        assert outcome == TransportError()
        assert form_client.notice == "There was an error sending your message. Please try again."

    async def test_server_error_shows_generic_retry_message(self, make_client, valid_contact):
        form_client, _ = make_client(respond(500, json={"success": False, "message": "Internal server error"}))

        outcome = await form_client.submit(valid_contact)

        assert outcome == RemoteRejected(
            message="There was an error sending your message. Please try again.",
            status_code=500,
        )
        assert form_client.notice == "There was an error sending your message. Please try again."
        assert form_client.form.name == "Jo"

    async def test_failing_listener_does_not_lose_outcome(self, make_client, valid_contact):
        form_client, _ = make_client(ok_response())
        seen = []

        def broken_listener(outcome):
            raise RuntimeError("render failed")

        form_client.on("submitted", broken_listener)
        form_client.on("submitted", seen.append)

        outcome = await form_client.submit(valid_contact)

        assert isinstance(outcome, Submitted)
        assert seen == [outcome]
        assert form_client.submitting is False

    async def test_malformed_success_body_is_transport_error(self, make_client, valid_contact):
        form_client, _ = make_client(respond(200, text="not json"))

        outcome = await form_client.submit(valid_contact)

        assert isinstance(outcome, TransportError)

    async def test_network_failure_is_transport_error(self, make_client, valid_contact):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        form_client, transport = make_client(refuse)
        errors = []
        form_client.on("transport_error", errors.append)

        outcome = await form_client.submit(valid_contact)

        assert outcome == TransportError()
        assert errors == [outcome]
        assert form_client.notice == "There was an error sending your message. Please try again."
        # No automatic retry
        assert len(transport.requests) == 1
        assert form_client.submitting is False

    async def test_second_submit_while_in_flight_is_refused(self, valid_contact):
        release = anyio.Event()
        requests = []

        async def slow_handler(request):
            requests.append(request)
            await release.wait()
            return httpx.Response(200, json={"success": True, "message": "Message sent successfully!", "id": "1"})

        outcomes = []
        async with httpx.AsyncClient(transport=httpx.MockTransport(slow_handler)) as http_client:
            form_client = ContactFormClient(api_url=API_URL, http_client=http_client)

            async def first_submit():
                outcomes.append(await form_client.submit(valid_contact))

            async with anyio.create_task_group() as tg:
                tg.start_soon(first_submit)
                while not requests:
                    await anyio.sleep(0)

                assert form_client.submitting is True
                with pytest.raises(SubmissionInProgress):
                    await form_client.submit(valid_contact)
                release.set()

        assert len(requests) == 1
        assert outcomes == [Submitted(id="1", message="Message sent successfully!")]
        assert form_client.submitting is False


class TestFieldValidation:

    def test_blur_validation_flags_bad_value(self):
        form_client = ContactFormClient(api_url=API_URL)
        form_client.set_field("email", "bad-email")

        assert form_client.validate_field("email") == "Please enter a valid email address"
        assert form_client.field_errors == {"email": "Please enter a valid email address"}

    def test_blur_validation_ignores_empty_field(self):
        form_client = ContactFormClient(api_url=API_URL)

        assert form_client.validate_field("name") is None
        assert form_client.field_errors == {}

    def test_typing_clears_field_error(self):
        form_client = ContactFormClient(api_url=API_URL)
        form_client.set_field("subject", "Hi")
        form_client.validate_field("subject")

        form_client.set_field("subject", "Hi there")

        assert form_client.field_errors == {}
        assert form_client.validate_field("subject") is None

    def test_unknown_field(self):
        form_client = ContactFormClient(api_url=API_URL)

        with pytest.raises(ValueError):
            form_client.validate_field("phone")
        with pytest.raises(ValueError):
            form_client.set_field("phone", "123")


class TestEvents:

    def test_unknown_event(self):
        form_client = ContactFormClient(api_url=API_URL)

        with pytest.raises(ValueError, match="Unknown event"):
            form_client.on("clicked", print)

    async def test_unsubscribe(self, make_client, valid_contact):
        form_client, _ = make_client(ok_response())
        seen = []
        unsubscribe = form_client.on("submitting", lambda: seen.append("submitting"))

        await form_client.submit(valid_contact)
        unsubscribe()
        await form_client.submit(valid_contact)

        assert seen == ["submitting"]


class TestAgainstService:

    async def test_submission_reaches_store(self, use_store, memory_store, valid_contact):
        use_store(memory_store)
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://portfolio.test") as http_client:
            form_client = ContactFormClient(api_url="http://portfolio.test/contact", http_client=http_client)
            outcome = await form_client.submit(valid_contact)

        assert isinstance(outcome, Submitted)
        stored = memory_store.list()
        assert [c.id for c in stored] == [outcome.id]
        assert stored[0].email == "a@b.com"
