"""Magic link router - public download endpoints and admin link management"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...errors import LinkUnavailable
from ...rate_limiter import create_rate_limiter
from .page import render_download_page, render_unavailable_page
from .schemas import MagicLinkResponse, MagicLinkView
from .service import MagicLinkService

logger = logging.getLogger(__name__)

download_rate_limit = create_rate_limiter(limit=60, window_seconds=60, key_prefix="download")

public_router = APIRouter(tags=["Downloads"], dependencies=[Depends(download_rate_limit)])
router = APIRouter(tags=["Magic Links"], dependencies=[Depends(require_admin)])


def get_magic_link_service(db: Session = Depends(get_db)) -> MagicLinkService:
    """Dependency injection for MagicLinkService"""
    return MagicLinkService(db)


@public_router.get("/download/{token}", response_class=HTMLResponse)
async def download_page(token: str, service: MagicLinkService = Depends(get_magic_link_service)):
    """Client-facing page. The token is the only credential."""
    try:
        view = service.resolve(token)
    except LinkUnavailable as e:
        return HTMLResponse(render_unavailable_page(), status_code=e.status_code)
    return HTMLResponse(render_download_page(view))


@public_router.get("/api/download/{token}", response_model=MagicLinkView)
async def download_view(token: str, service: MagicLinkService = Depends(get_magic_link_service)):
    return service.resolve(token)


@router.get("/projects/{project_id}/links", response_model=list[MagicLinkResponse])
async def get_project_links(
    project_id: str, service: MagicLinkService = Depends(get_magic_link_service)
):
    return service.list_links(project_id)


@router.post("/links/{link_id}/revoke", response_model=MagicLinkResponse)
async def revoke_link(link_id: str, service: MagicLinkService = Depends(get_magic_link_service)):
    return service.revoke(link_id)
