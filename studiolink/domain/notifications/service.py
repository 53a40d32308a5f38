"""Notification Dispatcher - one entry point for every transactional email kind"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from ...config import (
    EMAIL_FROM_ADDRESS,
    INTERNAL_FROM_ADDRESS,
    MAGIC_LINK_TTL_DAYS,
    NOTIFY_EMAILS,
    REPLY_TO_ADDRESS,
)
from ...email_service import send_email
from ...email_templates import (
    RenderedEmail,
    delivery_alert_template,
    files_ready_template,
    files_sent_receipt_template,
    project_status_template,
    reply_received_template,
)
from ...errors import NotificationFailed

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    FILES_READY = "files_ready"
    FILES_RESEND = "files_resend"
    FILES_SENT_RECEIPT = "files_sent_receipt"
    PROJECT_COMPLETE = "project_complete"
    PROJECT_REVISION = "project_revision"
    EMAIL_BOUNCED = "email.bounced"
    EMAIL_COMPLAINED = "email.complained"
    EMAIL_DELIVERY_DELAYED = "email.delivery_delayed"
    EMAIL_FAILED = "email.failed"
    EMAIL_SUPPRESSED = "email.suppressed"
    REPLY_RECEIVED = "reply_received"

    @property
    def is_client_facing(self) -> bool:
        return self in (NotificationKind.FILES_READY, NotificationKind.FILES_RESEND)


DELIVERY_ALERT_KINDS = {
    NotificationKind.EMAIL_BOUNCED,
    NotificationKind.EMAIL_COMPLAINED,
    NotificationKind.EMAIL_DELIVERY_DELAYED,
    NotificationKind.EMAIL_FAILED,
    NotificationKind.EMAIL_SUPPRESSED,
}


@dataclass
class DispatchResult:
    kind: NotificationKind
    ok: bool
    message_id: Optional[str] = None
    error: Optional[NotificationFailed] = None

    def raise_for_error(self) -> "DispatchResult":
        if self.error is not None:
            raise self.error
        return self


class NotificationDispatcher:
    """
    Renders and sends notifications.

    ``dispatch`` never raises: relay failures come back inside the DispatchResult so
    the caller's own operation is never taken down by the mail relay.
    """

    def __init__(
        self,
        ops_recipients: Optional[list[str]] = None,
        client_from: str = EMAIL_FROM_ADDRESS,
        internal_from: str = INTERNAL_FROM_ADDRESS,
        reply_to: Optional[str] = REPLY_TO_ADDRESS,
    ):
        self.ops_recipients = list(ops_recipients if ops_recipients is not None else NOTIFY_EMAILS)
        self.client_from = client_from
        self.internal_from = internal_from
        self.reply_to = reply_to

    def render(self, kind: NotificationKind, **context) -> RenderedEmail:
        if kind in (NotificationKind.FILES_READY, NotificationKind.FILES_RESEND):
            return files_ready_template(
                client_name=context["client_name"],
                project_name=context["project_name"],
                files=context["files"],
                download_url=context["download_url"],
                pending=context.get("pending"),
                expires_days=context.get("expires_days", MAGIC_LINK_TTL_DAYS),
                renewed=kind is NotificationKind.FILES_RESEND,
            )
        if kind is NotificationKind.FILES_SENT_RECEIPT:
            return files_sent_receipt_template(
                project_name=context["project_name"],
                client_name=context["client_name"],
                client_email=context["client_email"],
                file_names=context["file_names"],
                success=context["success"],
                error=context.get("error"),
            )
        if kind in (NotificationKind.PROJECT_COMPLETE, NotificationKind.PROJECT_REVISION):
            return project_status_template(
                project_name=context["project_name"],
                client_name=context["client_name"],
                status="completed" if kind is NotificationKind.PROJECT_COMPLETE else "revision",
                note=context.get("note"),
            )
        if kind in DELIVERY_ALERT_KINDS:
            return delivery_alert_template(
                event_type=kind.value,
                recipient=context.get("recipient") or "Unknown",
                email_subject=context.get("email_subject") or "Unknown subject",
                details=context.get("details", []),
            )
        if kind is NotificationKind.REPLY_RECEIVED:
            return reply_received_template(
                from_email=context["from_email"],
                email_subject=context.get("email_subject") or "(No subject)",
            )
        raise ValueError(f"Unknown notification kind: {kind}")

    def resolve_recipients(self, kind: NotificationKind, to: Optional[str] = None) -> list[str]:
        if kind.is_client_facing:
            return [to] if to else []
        return self.ops_recipients

    async def dispatch(
        self, kind: NotificationKind, to: Optional[str] = None, **context
    ) -> DispatchResult:
        recipients = self.resolve_recipients(kind, to)
        if not recipients:
            reason = "client has no email address" if kind.is_client_facing else "NOTIFY_EMAILS is empty"
            logger.warning(f"⚠️ Skipping {kind.value} notification: {reason}")
            return DispatchResult(
                kind, False, error=NotificationFailed("invalid_recipient", f"No recipient: {reason}")
            )

        try:
            rendered = self.render(kind, **context)
            response = await send_email(
                to=recipients,
                subject=rendered.subject,
                mjml_content=rendered.mjml,
                text=rendered.text,
                from_address=self.client_from if kind.is_client_facing else self.internal_from,
                reply_to=self.reply_to if kind.is_client_facing else None,
            )
        except NotificationFailed as e:
            logger.warning(f"⚠️ {kind.value} notification not sent ({e.kind}): {e.message}")
            return DispatchResult(kind, False, error=e)
        except Exception as e:
            logger.exception(f"❌ Unexpected error dispatching {kind.value}")
            return DispatchResult(kind, False, error=NotificationFailed("service_unavailable", str(e)))

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info(f"📧 {kind.value} notification sent: {message_id}")
        return DispatchResult(kind, True, message_id=message_id)


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()
