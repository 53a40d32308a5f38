"""
Email transport using Resend.
Bodies are MJML compiled to HTML; every send is bounded by EMAIL_SEND_TIMEOUT.
"""

import asyncio
import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, EMAIL_SEND_TIMEOUT, RESEND_API_KEY
from .errors import NotificationFailed

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY

# Resend error "name" values grouped by what the admin can do about them
RATE_LIMIT_ERRORS = {"rate_limit_exceeded"}
BILLING_ERRORS = {"daily_quota_exceeded", "monthly_quota_exceeded"}
AUTH_ERRORS = {"missing_api_key", "invalid_api_key", "invalid_api_Key", "restricted_api_key"}
RECIPIENT_ERRORS = {"invalid_to_address", "invalid_parameter"}


def classify_resend_error(error: Exception) -> str:
    """Map a Resend SDK exception onto a NotificationFailed kind."""
    error_type = str(getattr(error, "error_type", "") or "")
    code = getattr(error, "code", None)
    try:
        code = int(code) if code is not None else None
    except (TypeError, ValueError):
        code = None
    message = str(getattr(error, "message", "") or error).lower()

    if error_type in RATE_LIMIT_ERRORS:
        return "rate_limited"
    if error_type in BILLING_ERRORS:
        return "billing"
    if error_type in AUTH_ERRORS:
        return "auth_failure"
    if "domain" in message and ("verif" in message or "not found" in message):
        return "domain_unverified"
    if error_type in RECIPIENT_ERRORS or (
        error_type == "validation_error" and ("to" in message or "email" in message)
    ):
        return "invalid_recipient"
    if code == 429:
        return "rate_limited"
    if code in (401, 403):
        return "auth_failure"
    if code == 402:
        return "billing"
    if code in (400, 422):
        return "invalid_recipient"
    return "service_unavailable"


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise NotificationFailed("template", f"Failed to compile email template: {e}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    text: Optional[str] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
    timeout: float = EMAIL_SEND_TIMEOUT,
) -> dict:
    """
    Send an email through Resend.

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (compiled to HTML here)
        text: Plain-text alternative
        from_address: Sender, defaults to EMAIL_FROM_ADDRESS
        reply_to: Optional Reply-To address
        attachments: Optional list of {"filename", "content"} dicts
        timeout: Seconds to wait for the relay before giving up

    Returns:
        Resend response dict ({"id": ...})

    Raises:
        NotificationFailed: with a kind describing why the relay refused
    """
    recipients = [to] if isinstance(to, str) else list(to)
    if not recipients:
        raise NotificationFailed("invalid_recipient", "No recipients for email")

    if not resend.api_key:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise NotificationFailed("not_configured")

    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": compile_mjml_to_html(mjml_content),
    }
    if text:
        email_data["text"] = text
    if reply_to:
        email_data["reply_to"] = reply_to
    if attachments:
        email_data["attachments"] = [
            {"filename": attachment["filename"], "content": attachment["content"]}
            for attachment in attachments
        ]

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = await asyncio.wait_for(
            asyncio.to_thread(resend.Emails.send, email_data), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        logger.error(f"❌ Resend did not answer within {timeout}s for {recipients}")
        raise NotificationFailed("service_unavailable", "The email service timed out.") from e
    except Exception as e:
        kind = classify_resend_error(e)
        logger.error(f"❌ Email send error to {recipients} ({kind}): {e}")
        raise NotificationFailed(kind) from e

    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response if isinstance(response, dict) else {"id": getattr(response, "id", None)}
