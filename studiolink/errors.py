"""
Error taxonomy shared by every domain service.

Services raise these; main.py turns them into JSON responses so routers stay thin.
"""

import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

LINK_UNAVAILABLE_MESSAGE = "This link has expired or is invalid."


class StudioLinkError(Exception):
    """Base class for errors that map onto an HTTP response"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, **extra):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": type(self).__name__, **self.extra}


class ValidationError(StudioLinkError):
    """Missing or malformed input, raised before any side effect"""

    status_code = 400


class NotFoundError(StudioLinkError):
    status_code = 404


class InvalidTaskState(StudioLinkError):
    """A task referenced by a link operation is not actually file-ready"""

    status_code = 409


class LinkUnavailable(StudioLinkError):
    """Token cannot be served. Subclasses differ for logs, never for the client."""

    status_code = 404

    def to_dict(self) -> dict:
        return {"detail": LINK_UNAVAILABLE_MESSAGE, "valid": False}


class InvalidToken(LinkUnavailable):
    pass


class ExpiredToken(LinkUnavailable):
    pass


class TransferFailed(StudioLinkError):
    status_code = 502
    retryable = False


class UploadFailed(TransferFailed):
    """Network or storage I/O failure; worth another attempt"""

    retryable = True


class UploadAborted(TransferFailed):
    """Cancelled by the user; never retried"""

    status_code = 499


class UploadInProgress(TransferFailed):
    """Another upload already owns this task's file slot"""

    status_code = 409


NOTIFICATION_MESSAGES = {
    "rate_limited": "The email service is rate limiting us. Wait a minute and resend.",
    "invalid_recipient": "The client's email address was rejected. Check it and resend.",
    "auth_failure": "The email service rejected our API key. Check RESEND_API_KEY.",
    "billing": "The email service account has a billing problem.",
    "domain_unverified": "The sending domain is not verified with the email service.",
    "service_unavailable": "The email service is unreachable right now. Try again shortly.",
    "not_configured": "Email sending is not configured on this server.",
    "template": "The email could not be rendered.",
}


class NotificationFailed(StudioLinkError):
    """Mail relay failure with a sub-kind the caller can act on"""

    status_code = 502

    def __init__(self, kind: str, message: Optional[str] = None, **extra):
        self.kind = kind if kind in NOTIFICATION_MESSAGES else "service_unavailable"
        super().__init__(message or NOTIFICATION_MESSAGES[self.kind], kind=self.kind, **extra)


class StoreFailed(StudioLinkError):
    """Persistence failure; callers must reload rather than trust local state"""

    status_code = 503


async def studiolink_error_handler(request: Request, exc: StudioLinkError):
    if exc.status_code >= 500:
        logger.error(f"❌ {type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"⚠️ {type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"❌ Database error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=StoreFailed.status_code,
        content=StoreFailed("Database operation failed. Reload and try again.").to_dict(),
    )
