"""
Admin session orchestrator.

Runs admin commands against the services while keeping the Projection in step:
apply locally, call the store, then confirm or roll back. A StoreFailed also
reloads the project because the local copy can no longer be trusted.
"""

import logging
import threading
from contextlib import contextmanager
from typing import BinaryIO, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..domain.notifications import NotificationDispatcher, get_dispatcher
from ..domain.projects.schemas import ProjectResponse, TaskResponse
from ..domain.projects.service import ProjectService, SendResult
from ..errors import NotFoundError, StoreFailed, StudioLinkError, UploadInProgress
from ..models import UPLOADING_SENTINEL
from ..storage import FileTransferChannel, ProgressCallback
from .projection import PendingMutation, Projection

logger = logging.getLogger(__name__)


def project_row(project) -> dict:
    return ProjectResponse.model_validate(project).model_dump(mode="json")


def task_row(task) -> dict:
    return TaskResponse.model_validate(task).model_dump(mode="json")


class AdminSession:
    def __init__(
        self,
        channel: FileTransferChannel,
        dispatcher: Optional[NotificationDispatcher] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.channel = channel
        self.dispatcher = dispatcher or get_dispatcher()
        self.session_factory = session_factory
        self.projection = Projection()
        self._uploads: dict[str, threading.Event] = {}

    @contextmanager
    def _service(self):
        db = self.session_factory()
        try:
            yield ProjectService(db)
        finally:
            db.close()

    # ---------------------------------------------------------------- queries

    def refresh(self) -> Projection:
        with self._service() as service:
            self.projection.load(project_row(p) for p in service.get_projects())
        return self.projection

    def reload_project(self, project_id: str) -> None:
        with self._service() as service:
            try:
                row = project_row(service.get_project(project_id))
            except NotFoundError:
                row = None
        self.projection.reload(project_id, row)

    # --------------------------------------------------------------- plumbing

    def _fail(self, mutations: list[PendingMutation], error: StudioLinkError) -> None:
        for mutation in reversed(mutations):
            self.projection.rollback(mutation)
        if isinstance(error, StoreFailed) and mutations:
            for project_id in {m.project_id for m in mutations}:
                try:
                    self.reload_project(project_id)
                except (StudioLinkError, SQLAlchemyError) as reload_error:
                    logger.error(f"❌ Reload of project {project_id} failed: {reload_error}")

    @contextmanager
    def _rollback_on_failure(self, mutations: list[PendingMutation]):
        """Undo the mutations if the store call fails. Raw database errors surface as StoreFailed."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"❌ Database error during admin command: {e}")
            error = StoreFailed("Could not reach the store. Reload and try again.")
            self._fail(mutations, error)
            raise error from e
        except StudioLinkError as e:
            self._fail(mutations, e)
            raise

    def _settle_task(self, mutation: PendingMutation, task, status: Optional[str] = None) -> None:
        self.projection.confirm(mutation, task_row(task))
        if status is not None:
            self.projection.set_project_fields(mutation.project_id, status=status)

    # --------------------------------------------------------------- commands

    async def toggle_task(self, task_id: str) -> dict:
        _, task = self.projection.find_task(task_id)
        mutation = self.projection.apply("toggle_task", task_id, {"completed": not task["completed"]})
        with self._service() as service:
            with self._rollback_on_failure([mutation]):
                saved = service.set_task_completed(task_id, mutation.after["completed"])
                self._settle_task(mutation, saved, status=saved.project.status)
            await service.announce(self.dispatcher)
        return self.projection.find_task(task_id)[1]

    async def upload_file(
        self,
        task_id: str,
        fileobj: BinaryIO,
        filename: str,
        size: int,
        content_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict:
        """Upload a deliverable. One upload per task slot at a time."""
        if task_id in self._uploads or self.projection.is_uploading(task_id):
            raise UploadInProgress("This task already has an upload in progress")

        mutation = self.projection.apply(
            "attach_file", task_id, {"file_url": UPLOADING_SENTINEL, "file_name": filename}
        )
        cancel_event = threading.Event()
        self._uploads[task_id] = cancel_event
        try:
            with self._service() as service, self._rollback_on_failure([mutation]):
                saved = await service.attach_file(
                    task_id,
                    fileobj,
                    filename,
                    size,
                    self.channel,
                    content_type=content_type,
                    on_progress=on_progress,
                    cancel_event=cancel_event,
                )
                self._settle_task(mutation, saved)
        finally:
            self._uploads.pop(task_id, None)
        return self.projection.find_task(task_id)[1]

    def cancel_upload(self, task_id: str) -> bool:
        event = self._uploads.get(task_id)
        if event is None:
            return False
        event.set()
        logger.info(f"⚠️ Cancelling upload for task {task_id}")
        return True

    async def remove_file(self, task_id: str) -> dict:
        if task_id in self._uploads:
            raise UploadInProgress("Wait for the upload to finish or cancel it first")
        mutation = self.projection.apply("remove_file", task_id, {"file_url": None, "file_name": None})
        with self._service() as service:
            with self._rollback_on_failure([mutation]):
                saved = await service.remove_file(task_id, self.channel)
                self._settle_task(mutation, saved)
        return self.projection.find_task(task_id)[1]

    async def send(self, project_id: str, task_ids: Optional[list[str]] = None) -> SendResult:
        """Send files to the client, showing them as sent until the store says otherwise."""
        ready = task_ids or [
            t["id"]
            for t in self.projection.tasks(project_id)
            if t["is_client_task"] and t["file_url"] not in (None, UPLOADING_SENTINEL) and not t["sent"]
        ]
        mutations = [
            self.projection.apply("send", task_id, {"sent": True, "completed": True})
            for task_id in ready
            if task_id in self.projection.project(project_id)["tasks"]
        ]
        with self._service() as service:
            with self._rollback_on_failure(mutations):
                result = await service.send_to_client(project_id, self.dispatcher, task_ids=ready or None)
        for mutation in mutations:
            self.projection.confirm(mutation)
        self.reload_project(project_id)
        return result
