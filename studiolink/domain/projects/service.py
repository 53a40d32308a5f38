"""
Project service - the project/task store.

Every mutation that can move a project between progress, revision and completed
recomputes the stored status before the same commit. Status changes queue an
internal notification that the caller sends once the write has landed.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import BinaryIO, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import UPLOAD_MAX_ATTEMPTS, UPLOAD_MAX_BYTES
from ...errors import (
    InvalidTaskState,
    NotFoundError,
    NotificationFailed,
    StoreFailed,
    TransferFailed,
    ValidationError,
)
from ...models import Project, ProjectStatus, Revision, Task, utcnow
from ...storage import FileTransferChannel, ProgressCallback
from ..catalog.resolver import revision_task_drafts
from ..catalog.service import CatalogService
from ..magic_links.service import MagicLinkService, download_url
from ..notifications import NotificationDispatcher, NotificationKind
from .repository import ProjectRepository
from .schemas import ProjectCreate, ProjectUpdate, RevisionCreate, RevisionUpdate

logger = logging.getLogger(__name__)

DEFAULT_REVISION_NOTE = "Revision requested"

STATUS_NOTIFICATIONS = {
    ProjectStatus.COMPLETED: NotificationKind.PROJECT_COMPLETE,
    ProjectStatus.REVISION: NotificationKind.PROJECT_REVISION,
}


@dataclass
class SendResult:
    link_id: str
    download_url: str
    kind: str
    message_id: Optional[str]
    sent_task_ids: list[str]
    pending_task_ids: list[str]
    status: ProjectStatus


class ProjectService:
    """Service layer for projects, tasks and revisions"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProjectRepository()
        # (kind, context) pairs waiting for announce()
        self.pending_notifications: list[tuple[NotificationKind, dict]] = []

    # ---------------------------------------------------------------- helpers

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Database error while trying to {action}: {e}")
            raise StoreFailed(f"Could not {action}. Reload and try again.") from e

    def _sync_status(self, project: Project, note: Optional[str] = None) -> ProjectStatus:
        """Recompute the derived status in place and queue a notice if it changed."""
        new_status = project.derive_status()
        old_status = project.status
        if new_status.value != old_status:
            project.status = new_status.value
            logger.info(f"🔄 Project {project.id} status {old_status} -> {new_status.value}")
            kind = STATUS_NOTIFICATIONS.get(new_status)
            if kind is not None:
                self.pending_notifications.append(
                    (
                        kind,
                        {
                            "project_name": project.name,
                            "client_name": project.client.name if project.client else "Unknown",
                            "note": note,
                        },
                    )
                )
        return new_status

    async def announce(self, dispatcher: NotificationDispatcher) -> list:
        """Send queued status notifications. Best effort, never raises."""
        queued, self.pending_notifications = self.pending_notifications, []
        results = []
        for kind, context in queued:
            results.append(await dispatcher.dispatch(kind, **context))
        return results

    # --------------------------------------------------------------- projects

    def get_projects(self, client_id: Optional[str] = None) -> list[Project]:
        return self.repo.get_projects(self.db, client_id)

    def get_project(self, project_id: str) -> Project:
        project = self.repo.get_project_by_id(self.db, project_id)
        if not project:
            raise NotFoundError("Project not found")
        return project

    def get_task(self, task_id: str) -> Task:
        task = self.repo.get_task_by_id(self.db, task_id)
        if not task:
            raise NotFoundError("Task not found")
        return task

    def get_revision(self, revision_id: str) -> Revision:
        revision = self.repo.get_revision_by_id(self.db, revision_id)
        if not revision:
            raise NotFoundError("Revision not found")
        return revision

    def create_project(self, data: ProjectCreate) -> Project:
        """Create a project and its resolved checklist in one commit."""
        client = self.repo.get_client_by_id(self.db, data.client_id)
        if not client:
            raise NotFoundError("Client not found")

        resolved = CatalogService(self.db).resolve_tasks(data.services)

        project = Project(
            name=data.name,
            client=client,
            due_date=data.due_date,
            services=list(data.services),
            service_types=resolved.service_types,
            status=ProjectStatus.PROGRESS.value,
        )
        for position, draft in enumerate(resolved.tasks):
            project.tasks.append(
                Task(
                    position=position,
                    text=draft.text,
                    service_type=draft.service_type,
                    is_editor_task=draft.is_editor_task,
                    is_client_task=draft.is_client_task,
                )
            )
        project.status = project.derive_status().value

        self.db.add(project)
        self._commit("create the project")
        self.db.refresh(project)
        logger.info(f"✅ Project created: {project.id} ({project.name}) with {len(project.tasks)} tasks")
        return project

    def update_project(self, project_id: str, data: ProjectUpdate) -> Project:
        project = self.get_project(project_id)
        updates = data.model_dump(exclude_unset=True)

        if updates.get("client_id") and updates["client_id"] != project.client_id:
            if not self.repo.get_client_by_id(self.db, updates["client_id"]):
                raise NotFoundError("Client not found")

        for key, value in updates.items():
            if value is not None:
                setattr(project, key, value)
        self._commit("update the project")
        self.db.refresh(project)
        return project

    def delete_project(self, project_id: str) -> dict:
        """Tasks, revisions and magic links go with the project."""
        project = self.get_project(project_id)
        self.db.delete(project)
        self._commit("delete the project")
        logger.info(f"🗑️ Project deleted: {project_id}")
        return {"message": "Project deleted"}

    # ------------------------------------------------------------------ tasks

    def set_task_completed(self, task_id: str, completed: bool) -> Task:
        task = self.get_task(task_id)
        task.completed = completed
        self._sync_status(task.project)
        self._commit("update the task")
        self.db.refresh(task)
        return task

    def _client_task_for_file(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if not task.is_client_task:
            raise ValidationError("Only client tasks take deliverable files")
        return task

    async def attach_file(
        self,
        task_id: str,
        fileobj: BinaryIO,
        filename: str,
        size: int,
        channel: FileTransferChannel,
        content_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Task:
        """
        Upload a deliverable and attach it to a client task.

        A replaced file is a new deliverable, so the task's sent marks are cleared
        and the previous object is deleted once the new one is recorded.

        Raises:
            ValidationError: not a client task, empty name or file too large
            TransferFailed: the upload failed or was aborted
            StoreFailed: the upload landed but recording it did not
        """
        task = self._client_task_for_file(task_id)
        if not filename:
            raise ValidationError("File name is required")
        if size > UPLOAD_MAX_BYTES:
            raise ValidationError(
                f"File is larger than the {UPLOAD_MAX_BYTES // (1024 * 1024)}MB limit", status_code=413
            )

        stored = await asyncio.to_thread(
            channel.upload_with_retry,
            task.project_id,
            fileobj,
            filename,
            size,
            max_attempts=UPLOAD_MAX_ATTEMPTS,
            content_type=content_type,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

        previous_url = task.file_url if task.has_file else None
        task.file_name = stored.file_name
        task.file_url = stored.public_url
        task.sent = False
        task.sent_at = None
        try:
            self._commit("save the uploaded file")
        except StoreFailed:
            await self._discard_blob(channel, stored.public_url)
            raise

        if previous_url and previous_url != stored.public_url:
            await self._discard_blob(channel, previous_url)

        self.db.refresh(task)
        logger.info(f"📎 Attached {stored.file_name} to task {task_id}")
        return task

    async def _discard_blob(self, channel: FileTransferChannel, url: str) -> None:
        try:
            await asyncio.to_thread(channel.remove, url)
        except TransferFailed as e:
            logger.warning(f"⚠️ Left orphaned file behind at {url}: {e.message}")

    async def remove_file(self, task_id: str, channel: FileTransferChannel) -> Task:
        """Clear the task's file fields, then delete the stored object."""
        task = self._client_task_for_file(task_id)
        if not task.file_url:
            raise ValidationError("Task has no file attached")

        stored_url = task.file_url if task.has_file else None
        task.file_name = None
        task.file_url = None
        self._commit("remove the file")

        if stored_url:
            await self._discard_blob(channel, stored_url)

        self.db.refresh(task)
        logger.info(f"🗑️ Removed file from task {task_id}")
        return task

    # -------------------------------------------------------------- revisions

    def create_revision(self, project_id: str, data: RevisionCreate) -> Revision:
        """Record a revision and spawn its editor/client task pair."""
        project = self.get_project(project_id)
        if project.service_types and data.type not in project.service_types:
            raise ValidationError(
                f"'{data.type}' is not one of this project's services: {', '.join(project.service_types)}"
            )

        note = (data.note or "").strip() or DEFAULT_REVISION_NOTE
        revision = Revision(type=data.type, note=note)
        project.revisions.append(revision)

        position = self.repo.next_position(project)
        for offset, draft in enumerate(revision_task_drafts(data.type)):
            project.tasks.append(
                Task(
                    revision=revision,
                    position=position + offset,
                    text=draft.text,
                    service_type=draft.service_type,
                    is_editor_task=draft.is_editor_task,
                    is_client_task=draft.is_client_task,
                )
            )

        self._sync_status(project, note=note)
        self._commit("create the revision")
        self.db.refresh(revision)
        logger.info(f"✅ Revision {revision.id} ({data.type}) added to project {project_id}")
        return revision

    def update_revision(self, revision_id: str, data: RevisionUpdate) -> Revision:
        """Edit type or note. The spawned tasks keep their ids and follow a type change."""
        revision = self.get_revision(revision_id)
        if data.note is not None:
            revision.note = data.note.strip() or DEFAULT_REVISION_NOTE
        if data.type and data.type != revision.type:
            revision.type = data.type
            drafts = {d.is_client_task: d for d in revision_task_drafts(data.type)}
            for task in revision.tasks:
                draft = drafts[task.is_client_task]
                task.text = draft.text
                task.service_type = draft.service_type
        self._commit("update the revision")
        self.db.refresh(revision)
        return revision

    def delete_revision(self, revision_id: str) -> Project:
        """Remove a revision together with exactly the tasks it spawned."""
        revision = self.get_revision(revision_id)
        project = revision.project
        spawned = [t for t in project.tasks if t.revision_id == revision.id]
        for task in spawned:
            project.tasks.remove(task)
        project.revisions.remove(revision)

        self._sync_status(project)
        self._commit("delete the revision")
        self.db.refresh(project)
        logger.info(f"🗑️ Revision {revision_id} deleted with {len(spawned)} tasks")
        return project

    # ------------------------------------------------------------------- send

    def select_ready(self, project: Project, task_ids: Optional[list[str]] = None) -> list[str]:
        """Explicit ids pass through for the issuer to validate; default is every unsent ready file."""
        if task_ids:
            return list(dict.fromkeys(task_ids))
        return [t.id for t in project.client_tasks if t.is_ready and not t.sent]

    async def send_to_client(
        self,
        project_id: str,
        dispatcher: NotificationDispatcher,
        task_ids: Optional[list[str]] = None,
    ) -> SendResult:
        """
        Release files to the project's client.

        The link is persisted before any mail goes out. If the client mail fails
        the link survives, the tasks stay unsent and NotificationFailed carries
        the download URL so the admin can pass it on by hand.
        """
        project = self.get_project(project_id)
        client = project.client
        if not client or not client.email:
            raise ValidationError("The project's client has no email address")

        ready_ids = self.select_ready(project, task_ids)
        if not ready_ids:
            raise InvalidTaskState("There are no files ready to send")
        ready_set = set(ready_ids)
        pending_ids = [t.id for t in project.client_tasks if not t.has_file and t.id not in ready_set]

        link = MagicLinkService(self.db).issue(project.id, client.id, ready_ids, pending_ids)
        url = download_url(link.token)

        tasks_by_id = {t.id: t for t in project.tasks}
        selected = [tasks_by_id[i] for i in ready_ids]
        kind = (
            NotificationKind.FILES_RESEND
            if all(t.sent for t in selected)
            else NotificationKind.FILES_READY
        )
        files = [{"type": t.client_label, "name": t.file_name} for t in selected]
        file_names = [f"{f['type']} ({f['name']})" for f in files]
        pending = [tasks_by_id[i].client_label for i in pending_ids]

        result = await dispatcher.dispatch(
            kind,
            to=client.email,
            client_name=client.name,
            project_name=project.name,
            files=files,
            download_url=url,
            pending=pending,
        )

        receipt = {
            "project_name": project.name,
            "client_name": client.name,
            "client_email": client.email,
            "file_names": file_names,
        }

        if not result.ok:
            await dispatcher.dispatch(
                NotificationKind.FILES_SENT_RECEIPT,
                success=False,
                error=result.error.message if result.error else None,
                **receipt,
            )
            error = result.error or NotificationFailed("service_unavailable")
            raise NotificationFailed(
                error.kind,
                error.message,
                download_url=url,
                link_id=link.id,
            )

        now = utcnow()
        for task in selected:
            task.sent = True
            task.completed = True
            task.sent_at = now
        status = self._sync_status(project)
        self._commit("mark the files as sent")

        logger.info(f"📧 Sent {len(selected)} file(s) for project {project.id} to {client.email}")
        await dispatcher.dispatch(NotificationKind.FILES_SENT_RECEIPT, success=True, **receipt)
        await self.announce(dispatcher)

        return SendResult(
            link_id=link.id,
            download_url=url,
            kind=kind.value,
            message_id=result.message_id,
            sent_task_ids=ready_ids,
            pending_task_ids=pending_ids,
            status=status,
        )
