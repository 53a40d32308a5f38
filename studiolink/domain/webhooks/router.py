"""Webhook router - inbound events from the mail relay"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from ... import config
from ...webhook_security import verify_resend_webhook
from ..notifications import NotificationDispatcher, get_dispatcher
from .service import EmailEventHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/email")
async def email_webhook(
    request: Request, dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """
    Resend delivery and inbound events.

    Once the signature checks out the relay always gets 200, even when handling
    fails, so it doesn't retry into a storm.
    """
    raw_body = await verify_resend_webhook(request, config.RESEND_WEBHOOK_SECRET)

    try:
        event = json.loads(raw_body or b"{}")
        if not isinstance(event, dict):
            raise ValueError("Webhook body is not a JSON object")
        result = await EmailEventHandler(dispatcher).handle(event)
        if result is not None and not result.ok:
            logger.error(f"❌ Webhook notification for {event.get('type')} was not delivered")
    except Exception as e:
        logger.exception(f"❌ Webhook processing error: {e}")

    return {"received": True}
