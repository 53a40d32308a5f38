"""Tests for the notification dispatcher and Resend error handling."""

import asyncio
import time

import pytest
import resend

from studiolink.domain.notifications import NotificationDispatcher, NotificationKind
from studiolink.email_service import classify_resend_error, send_email
from studiolink.errors import NotificationFailed


class FakeResendError(Exception):
    def __init__(self, message, error_type="", code=None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code


def files_ready_context():
    return {
        "client_name": "Harbour Realty",
        "project_name": "12 Ocean Drive",
        "files": [{"type": "Photos", "name": "photos.zip"}],
        "download_url": "https://studio.test/download/abc",
    }


class TestClassifyResendError:
    """Test mapping relay errors onto actionable kinds."""

    @pytest.mark.parametrize(
        "error, kind",
        [
            (FakeResendError("Too many requests", "rate_limit_exceeded", 429), "rate_limited"),
            (FakeResendError("Quota reached", "daily_quota_exceeded", 429), "billing"),
            (FakeResendError("API key is invalid", "invalid_api_key", 403), "auth_failure"),
            (FakeResendError("The example.com domain is not verified", "validation_error", 403), "domain_unverified"),
            (FakeResendError("Invalid `to` field", "validation_error", 422), "invalid_recipient"),
            (FakeResendError("Slow down", code=429), "rate_limited"),
            (FakeResendError("Unauthorized", code="401"), "auth_failure"),
            (ConnectionError("connection reset"), "service_unavailable"),
        ],
    )
    def test_kinds(self, error, kind):
        """Test each family of Resend errors."""
        assert classify_resend_error(error) == kind


class TestDispatch:
    """Test recipient routing and failure capture."""

    def test_client_mail(self, sent_emails):
        """Test that client mail goes only to the client from the client sender."""
        dispatcher = NotificationDispatcher(
            ops_recipients=["ops@studio.test"], client_from="Studio <files@studio.test>", reply_to="hello@studio.test"
        )
        result = asyncio.run(
            dispatcher.dispatch(NotificationKind.FILES_READY, to="agent@harbour.test", **files_ready_context())
        )

        assert result.ok
        assert result.message_id == "email_1"
        [payload] = sent_emails
        assert payload["to"] == ["agent@harbour.test"]
        assert payload["from"] == "Studio <files@studio.test>"
        assert payload["reply_to"] == "hello@studio.test"
        assert "<html" in payload["html"].lower()

    def test_internal_mail(self, sent_emails):
        """Test that internal kinds go to every ops recipient without a reply-to."""
        dispatcher = NotificationDispatcher(
            ops_recipients=["ops@studio.test", "lead@studio.test"],
            internal_from="Internal <internal@studio.test>",
            reply_to="hello@studio.test",
        )
        result = asyncio.run(
            dispatcher.dispatch(
                NotificationKind.PROJECT_REVISION,
                to="agent@harbour.test",
                project_name="12 Ocean Drive",
                client_name="Harbour Realty",
                note="Brighter",
            )
        )

        assert result.ok
        [payload] = sent_emails
        assert payload["to"] == ["ops@studio.test", "lead@studio.test"]
        assert payload["from"] == "Internal <internal@studio.test>"
        assert "reply_to" not in payload

    def test_no_ops_recipients(self, sent_emails):
        """Test that an empty ops list is reported rather than sent."""
        dispatcher = NotificationDispatcher(ops_recipients=[])
        result = asyncio.run(
            dispatcher.dispatch(NotificationKind.REPLY_RECEIVED, from_email="agent@harbour.test")
        )

        assert not result.ok
        assert result.error.kind == "invalid_recipient"
        assert sent_emails == []

    def test_client_mail_without_address(self, sent_emails):
        """Test that client-facing mail needs a recipient."""
        result = asyncio.run(
            NotificationDispatcher().dispatch(NotificationKind.FILES_READY, **files_ready_context())
        )
        assert not result.ok
        assert sent_emails == []

    def test_relay_failure_is_captured(self, failing_resend):
        """Test that dispatch reports relay errors instead of raising them."""
        result = asyncio.run(
            NotificationDispatcher().dispatch(
                NotificationKind.FILES_READY, to="agent@harbour.test", **files_ready_context()
            )
        )

        assert not result.ok
        assert result.error.kind == "rate_limited"
        with pytest.raises(NotificationFailed):
            result.raise_for_error()

    def test_not_configured(self, monkeypatch):
        """Test a missing API key."""
        monkeypatch.setattr(resend, "api_key", None)
        result = asyncio.run(
            NotificationDispatcher().dispatch(
                NotificationKind.FILES_READY, to="agent@harbour.test", **files_ready_context()
            )
        )
        assert result.error.kind == "not_configured"


class TestSendEmail:
    """Test the Resend transport."""

    def test_timeout(self, monkeypatch):
        """Test that a relay that never answers becomes service_unavailable."""

        def slow_send(params):
            time.sleep(0.5)
            return {"id": "late"}

        monkeypatch.setattr(resend, "api_key", "re_test_key")
        monkeypatch.setattr(resend.Emails, "send", slow_send)

        with pytest.raises(NotificationFailed) as exc_info:
            asyncio.run(
                send_email(
                    to="ops@studio.test",
                    subject="Hello",
                    mjml_content="<mjml><mj-body></mj-body></mjml>",
                    timeout=0.05,
                )
            )
        assert exc_info.value.kind == "service_unavailable"

    def test_no_recipients(self, sent_emails):
        """Test that an empty recipient list is refused."""
        with pytest.raises(NotificationFailed) as exc_info:
            asyncio.run(send_email(to=[], subject="Hello", mjml_content="<mjml></mjml>"))
        assert exc_info.value.kind == "invalid_recipient"
