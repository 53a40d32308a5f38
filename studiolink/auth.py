"""
Admin gate.

The whole admin surface sits behind one shared password supplied through
configuration and presented as a Bearer token.
"""

import hmac
import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def verify_admin_password(candidate: str) -> bool:
    expected = config.ADMIN_PASSWORD
    if not expected or not candidate:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


async def require_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> None:
    """FastAPI dependency guarding admin routes"""
    if not config.ADMIN_PASSWORD:
        logger.error("❌ ADMIN_PASSWORD not configured - refusing admin access")
        raise HTTPException(status_code=503, detail="Admin access is not configured")

    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Provide the admin password as a Bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not verify_admin_password(credentials.credentials):
        logger.warning("🚫 Rejected admin request with wrong password")
        raise HTTPException(
            status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Bearer"}
        )
