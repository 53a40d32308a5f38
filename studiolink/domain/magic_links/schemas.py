"""Magic link schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class DownloadFile(BaseModel):
    id: str
    type: str
    name: Optional[str] = None
    url: str


class PendingFile(BaseModel):
    type: str


class MagicLinkView(BaseModel):
    """What the client's download page is allowed to see"""

    valid: bool = True
    client_name: str
    project_name: str
    files: list[DownloadFile]
    pending_files: list[PendingFile]
    expires_at: datetime


class MagicLinkResponse(BaseModel):
    """Admin view of an issued link. The token is shown so the admin can resend the URL."""

    id: str
    token: str
    url: str
    project_id: str
    client_id: str
    task_ids: list[str]
    pending_task_ids: list[str]
    created_at: datetime
    expires_at: datetime
    accessed_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    state: Literal["active", "expired", "revoked"]
