"""Tests for Resend webhook verification and event handling."""

import base64
import json
import time

import pytest
import resend

from studiolink import config
from studiolink.webhook_security import (
    extract_svix_signing_key,
    sign_svix_payload,
    verify_svix_signature,
    verify_timestamp,
)

SECRET = "whsec_" + base64.b64encode(b"studio-webhook-signing-key").decode()

BOUNCE = {
    "type": "email.bounced",
    "data": {
        "to": ["agent@harbour.test"],
        "subject": "Your files are ready: 12 Ocean Drive",
        "bounce": {"type": "Permanent", "message": "Mailbox does not exist"},
    },
}


def signed_headers(payload: bytes, secret: str = SECRET, timestamp: str = None) -> dict:
    timestamp = timestamp or str(int(time.time()))
    signature = sign_svix_payload(secret, "msg_1", timestamp, payload)
    return {"svix-id": "msg_1", "svix-timestamp": timestamp, "svix-signature": f"v1,{signature}"}


class TestSignatures:
    """Test Svix signature checks."""

    def test_signing_key_from_secret(self):
        """Test that the whsec_ prefix is stripped before decoding."""
        assert extract_svix_signing_key(SECRET) == b"studio-webhook-signing-key"

    def test_valid_signature(self):
        """Test a correctly signed payload."""
        signature = sign_svix_payload(SECRET, "msg_1", "1700000000", b"{}")
        assert verify_svix_signature(SECRET, "msg_1", "1700000000", f"v1,{signature}", b"{}", now=1700000010)

    def test_rotated_signatures(self):
        """Test that any matching v1 entry in the header is accepted."""
        signature = sign_svix_payload(SECRET, "msg_1", "1700000000", b"{}")
        header = f"v1,bm90LXRoZS1zaWduYXR1cmU= v1,{signature}"
        assert verify_svix_signature(SECRET, "msg_1", "1700000000", header, b"{}", now=1700000000)

    def test_tampered_payload(self):
        """Test that a changed body fails verification."""
        signature = sign_svix_payload(SECRET, "msg_1", "1700000000", b"{}")
        assert not verify_svix_signature(
            SECRET, "msg_1", "1700000000", f"v1,{signature}", b'{"x":1}', now=1700000000
        )

    def test_replay_window(self):
        """Test that stale or malformed timestamps are refused."""
        assert verify_timestamp("1700000000", now=1700000299)
        assert not verify_timestamp("1700000000", now=1700000301)
        assert not verify_timestamp("yesterday")


class TestEmailWebhook:
    """Test the /webhooks/email endpoint."""

    def test_bounce_alerts_ops(self, api, sent_emails):
        """Test that a bounce is forwarded to ops with its reason."""
        response = api.post("/webhooks/email", json=BOUNCE)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        [alert] = sent_emails
        assert alert["to"] == ["ops@studio.test"]
        assert alert["subject"] == "🚨 EMAIL BOUNCED: agent@harbour.test"
        assert "Bounce Type: Permanent" in alert["text"]
        assert "Reason: Mailbox does not exist" in alert["text"]

    def test_failed_event(self, api, sent_emails):
        """Test the error detail of a failed send."""
        api.post(
            "/webhooks/email",
            json={"type": "email.failed", "data": {"to": "agent@harbour.test", "error": {"message": "Bad domain"}}},
        )
        assert "Error: Bad domain" in sent_emails[0]["text"]

    def test_reply_forwarded(self, api, sent_emails):
        """Test that a client reply is announced with the sender's address."""
        api.post(
            "/webhooks/email",
            json={
                "type": "email.received",
                "data": {"from": "Jane Agent <jane@harbour.test>", "subject": "Re: Your files"},
            },
        )

        [notice] = sent_emails
        assert notice["subject"] == "📧 Reply from jane@harbour.test: Re: Your files"

    def test_routine_events_ignored(self, api, sent_emails):
        """Test that delivered and opened events send nothing."""
        for event_type in ("email.delivered", "email.opened", "email.sent"):
            response = api.post("/webhooks/email", json={"type": event_type, "data": {}})
            assert response.status_code == 200
        assert sent_emails == []

    def test_bad_json_still_acknowledged(self, api, sent_emails):
        """Test that a body we cannot parse is logged, not retried."""
        response = api.post(
            "/webhooks/email", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 200
        assert sent_emails == []

    def test_relay_down_still_acknowledged(self, api, monkeypatch):
        """Test that a failing ops alert does not fail the webhook."""

        def broken_send(params):
            raise ConnectionError("relay unreachable")

        monkeypatch.setattr(resend.Emails, "send", broken_send)
        assert api.post("/webhooks/email", json=BOUNCE).status_code == 200


class TestSignedWebhook:
    """Test the endpoint with a signing secret configured."""

    @pytest.fixture(autouse=True)
    def signing_secret(self, monkeypatch):
        monkeypatch.setattr(config, "RESEND_WEBHOOK_SECRET", SECRET)

    def test_signed_request(self, api, sent_emails):
        """Test that a correctly signed event is processed."""
        payload = json.dumps(BOUNCE).encode()
        response = api.post("/webhooks/email", content=payload, headers=signed_headers(payload))

        assert response.status_code == 200
        assert len(sent_emails) == 1

    def test_bad_signature(self, api, sent_emails):
        """Test that a forged event is rejected before processing."""
        payload = json.dumps(BOUNCE).encode()
        other = "whsec_" + base64.b64encode(b"some-other-key").decode()
        response = api.post("/webhooks/email", content=payload, headers=signed_headers(payload, other))

        assert response.status_code == 401
        assert sent_emails == []

    def test_missing_headers(self, api, sent_emails):
        """Test that unsigned requests are rejected."""
        assert api.post("/webhooks/email", json=BOUNCE).status_code == 401

    def test_stale_timestamp(self, api, sent_emails):
        """Test that replays outside the window are rejected."""
        payload = json.dumps(BOUNCE).encode()
        stale = str(int(time.time()) - 3600)
        response = api.post("/webhooks/email", content=payload, headers=signed_headers(payload, timestamp=stale))
        assert response.status_code == 401
