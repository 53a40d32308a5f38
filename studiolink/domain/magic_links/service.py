"""
Magic Link Issuer and Validator.

A link grants a client read access to the deliverables behind a set of task
slots. Membership is stored as task ids and re-checked against the tasks on
every read, so a removed file disappears from the page instead of leaving a
dead URL. Links stay multi-use until they expire or are revoked.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import APP_URL, MAGIC_LINK_TTL_DAYS
from ...errors import (
    ExpiredToken,
    InvalidTaskState,
    InvalidToken,
    NotFoundError,
    StoreFailed,
    ValidationError,
)
from ...models import MagicLink, Project, utcnow
from .repository import MagicLinkRepository
from .schemas import DownloadFile, MagicLinkResponse, MagicLinkView, PendingFile

logger = logging.getLogger(__name__)

# 32 random bytes, 256 bits of entropy
TOKEN_BYTES = 32


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def download_url(token: str) -> str:
    return f"{APP_URL}/download/{token}"


def short_token(token: Optional[str]) -> str:
    """Tokens are credentials; logs only ever carry a prefix."""
    return f"{(token or '')[:6]}…"


class MagicLinkService:
    """Issue, resolve, list and revoke magic links"""

    def __init__(self, db: Session, ttl_days: int = MAGIC_LINK_TTL_DAYS):
        self.db = db
        self.repo = MagicLinkRepository()
        self.ttl = timedelta(days=ttl_days)

    def expires_at(self, link: MagicLink) -> datetime:
        return link.created_at + self.ttl

    def is_expired(self, link: MagicLink, now: Optional[datetime] = None) -> bool:
        return self.expires_at(link) <= (now or utcnow())

    # ------------------------------------------------------------------ issue

    def _check_ready(self, project: Project, ready_task_ids: list[str]) -> None:
        tasks = {t.id: t for t in project.tasks}
        bad = []
        for task_id in ready_task_ids:
            task = tasks.get(task_id)
            if task is None or not task.is_ready:
                bad.append(task_id)
        if bad:
            raise InvalidTaskState(
                "Only client tasks with an uploaded file can be sent", task_ids=bad
            )

    def _check_pending(self, project: Project, pending_task_ids: list[str]) -> None:
        client_task_ids = {t.id for t in project.client_tasks}
        bad = [task_id for task_id in pending_task_ids if task_id not in client_task_ids]
        if bad:
            raise InvalidTaskState("Pending entries must be client tasks of this project", task_ids=bad)

    def issue(
        self,
        project_id: str,
        client_id: str,
        ready_task_ids: Iterable[str],
        pending_task_ids: Iterable[str] = (),
    ) -> MagicLink:
        """
        Mint and persist a new link. Every call creates a new token; earlier
        links for the same project stay valid.

        Raises:
            NotFoundError: the project does not exist
            ValidationError: nothing to release, or the client does not own the project
            InvalidTaskState: a ready id is not a client task with a stored file
        """
        ready = list(dict.fromkeys(ready_task_ids))
        pending = [t for t in dict.fromkeys(pending_task_ids) if t not in ready]
        if not ready:
            raise ValidationError("Select at least one file to send")

        project = self.repo.get_project(self.db, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        if project.client_id != client_id:
            raise ValidationError("Client does not own this project")

        self._check_ready(project, ready)
        self._check_pending(project, pending)

        try:
            link = self.repo.create_link(
                self.db,
                token=generate_token(),
                project_id=project_id,
                client_id=client_id,
                task_ids=ready,
                pending_task_ids=pending,
                accessed_at=None,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to persist magic link for project {project_id}: {e}")
            raise StoreFailed("Could not save the download link") from e

        logger.info(
            f"🔗 Issued link {short_token(link.token)} for project {project_id}: "
            f"{len(ready)} ready, {len(pending)} pending"
        )
        return link

    # ---------------------------------------------------------------- resolve

    def _lookup(self, token: str, now: datetime) -> MagicLink:
        link = self.repo.get_by_token(self.db, token) if token else None
        if link is None:
            logger.info(f"⚠️ Unknown link token {short_token(token)}")
            raise InvalidToken("Unknown token")
        if link.revoked_at is not None:
            logger.info(f"⚠️ Revoked link {short_token(token)} was requested")
            raise InvalidToken("Link revoked")
        if self.is_expired(link, now):
            logger.info(f"⚠️ Expired link {short_token(token)} was requested")
            raise ExpiredToken("Link expired")
        return link

    def build_view(self, link: MagicLink) -> MagicLinkView:
        """Re-read the tasks behind ``link`` and keep only what is still releasable."""
        project = link.project
        released = self.repo.get_tasks_by_ids(self.db, link.project_id, list(link.task_ids or []))

        files = []
        shown = set()
        for task_id in link.task_ids or []:
            task = released.get(task_id)
            if task is None or not task.has_file:
                continue
            files.append(
                DownloadFile(id=task.id, type=task.client_label, name=task.file_name, url=task.file_url)
            )
            shown.add(task.id)

        pending_files = []
        pending_tasks = self.repo.get_tasks_by_ids(
            self.db, link.project_id, list(link.pending_task_ids or [])
        )
        for task_id in link.pending_task_ids or []:
            task = pending_tasks.get(task_id)
            if task is None or task_id in shown:
                continue
            pending_files.append(PendingFile(type=task.client_label))
            shown.add(task_id)

        for task in project.client_tasks:
            if task.id not in shown and not task.has_file:
                pending_files.append(PendingFile(type=task.client_label))
                shown.add(task.id)

        return MagicLinkView(
            valid=True,
            client_name=link.client.name,
            project_name=project.name,
            files=files,
            pending_files=pending_files,
            expires_at=self.expires_at(link),
        )

    def resolve(self, token: str, now: Optional[datetime] = None) -> MagicLinkView:
        """
        Validate ``token`` and build the client's download view.

        The first successful resolve stamps accessed_at; later ones leave it alone.

        Raises:
            InvalidToken: unknown or revoked token
            ExpiredToken: older than the link lifetime
        """
        now = now or utcnow()
        link = self._lookup(token, now)
        view = self.build_view(link)

        try:
            if self.repo.mark_accessed(self.db, link.id, now):
                logger.info(f"👀 Link {short_token(token)} opened for the first time")
        except SQLAlchemyError as e:
            # the audit stamp must not block the client's download
            self.db.rollback()
            logger.error(f"❌ Could not record first access of {short_token(token)}: {e}")

        return view

    # ------------------------------------------------------------------ admin

    def state_of(self, link: MagicLink, now: Optional[datetime] = None) -> str:
        if link.revoked_at is not None:
            return "revoked"
        if self.is_expired(link, now):
            return "expired"
        return "active"

    def to_response(self, link: MagicLink, now: Optional[datetime] = None) -> MagicLinkResponse:
        return MagicLinkResponse(
            id=link.id,
            token=link.token,
            url=download_url(link.token),
            project_id=link.project_id,
            client_id=link.client_id,
            task_ids=list(link.task_ids or []),
            pending_task_ids=list(link.pending_task_ids or []),
            created_at=link.created_at,
            expires_at=self.expires_at(link),
            accessed_at=link.accessed_at,
            revoked_at=link.revoked_at,
            state=self.state_of(link, now),
        )

    def list_links(self, project_id: str) -> list[MagicLinkResponse]:
        if self.repo.get_project(self.db, project_id) is None:
            raise NotFoundError("Project not found")
        now = utcnow()
        return [self.to_response(link, now) for link in self.repo.get_links_for_project(self.db, project_id)]

    def revoke(self, link_id: str) -> MagicLinkResponse:
        link = self.repo.get_by_id(self.db, link_id)
        if link is None:
            raise NotFoundError("Link not found")
        link = self.repo.revoke(self.db, link, utcnow())
        logger.info(f"🔒 Revoked link {short_token(link.token)} for project {link.project_id}")
        return self.to_response(link)
