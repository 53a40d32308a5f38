"""Turns mail relay events into ops notifications"""

import logging
from typing import Optional

from ...utils.sanitization import extract_email_address
from ..notifications import DispatchResult, NotificationDispatcher, NotificationKind
from ..notifications.service import DELIVERY_ALERT_KINDS

logger = logging.getLogger(__name__)

RECEIVED_EVENT = "email.received"


def first_recipient(data: dict) -> str:
    to = data.get("to")
    if isinstance(to, list):
        return to[0] if to else "Unknown"
    return to or "Unknown"


def alert_details(event_type: str, data: dict) -> list[tuple[str, str]]:
    if event_type == "email.bounced":
        bounce = data.get("bounce") or {}
        return [
            ("Bounce Type", bounce.get("type") or "Unknown"),
            ("Reason", bounce.get("message") or "No reason provided"),
        ]
    if event_type == "email.failed":
        error = data.get("error") or {}
        return [("Error", error.get("message") or "Unknown error")]
    return []


class EmailEventHandler:
    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher

    async def handle(self, event: dict) -> Optional[DispatchResult]:
        """Dispatch the notification ``event`` calls for, if any."""
        event_type = event.get("type")
        data = event.get("data") or {}

        if event_type == RECEIVED_EVENT:
            from_email = extract_email_address(data.get("from")) or "Unknown sender"
            logger.info(f"📧 Client reply received from {from_email}")
            return await self.dispatcher.dispatch(
                NotificationKind.REPLY_RECEIVED,
                from_email=from_email,
                email_subject=data.get("subject") or "(No subject)",
            )

        try:
            kind = NotificationKind(event_type)
        except ValueError:
            kind = None

        if kind not in DELIVERY_ALERT_KINDS:
            logger.info(f"📬 Email event {event_type} for {first_recipient(data)}")
            return None

        logger.warning(f"⚠️ Delivery problem {event_type} for {first_recipient(data)}")
        return await self.dispatcher.dispatch(
            kind,
            recipient=first_recipient(data),
            email_subject=data.get("subject") or "Unknown subject",
            details=alert_details(event_type, data),
        )
