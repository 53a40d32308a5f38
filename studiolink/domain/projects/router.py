"""Project router - FastAPI endpoints for projects, tasks, files, revisions and sending"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...storage import FileTransferChannel, get_transfer_channel
from ..catalog.schemas import TaskPreviewRequest, TaskPreviewResponse
from ..catalog.service import CatalogService
from ..notifications import NotificationDispatcher, get_dispatcher
from .schemas import (
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    RevisionCreate,
    RevisionResponse,
    RevisionUpdate,
    SendRequest,
    SendResponse,
    TaskResponse,
    TaskUpdate,
)
from .service import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Projects"], dependencies=[Depends(require_admin)])


def get_project_service(db: Session = Depends(get_db)) -> ProjectService:
    """Dependency injection for ProjectService"""
    return ProjectService(db)


def schedule_announcements(
    background_tasks: BackgroundTasks, service: ProjectService, dispatcher: NotificationDispatcher
) -> None:
    if service.pending_notifications:
        background_tasks.add_task(service.announce, dispatcher)


def upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    # Older multipart parsers leave size unset
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    return size


# ============================================================================
# PROJECTS
# ============================================================================


@router.get("/projects", response_model=list[ProjectResponse])
async def get_projects(
    client_id: Optional[str] = Query(None),
    service: ProjectService = Depends(get_project_service),
):
    """Open projects by due date, completed projects last"""
    return service.get_projects(client_id)


@router.post("/projects/preview-tasks", response_model=TaskPreviewResponse)
async def preview_tasks(data: TaskPreviewRequest, db: Session = Depends(get_db)):
    """Dry run of the checklist a project with these services would get"""
    resolved = CatalogService(db).resolve_tasks(data.services)
    return TaskPreviewResponse.from_resolved(resolved)


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, service: ProjectService = Depends(get_project_service)):
    return service.get_project(project_id)


@router.post("/projects", response_model=ProjectResponse)
async def create_project(
    data: ProjectCreate, service: ProjectService = Depends(get_project_service)
):
    return service.create_project(data)


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str, data: ProjectUpdate, service: ProjectService = Depends(get_project_service)
):
    return service.update_project(project_id, data)


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, service: ProjectService = Depends(get_project_service)):
    return service.delete_project(project_id)


# ============================================================================
# TASKS AND FILES
# ============================================================================


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    background_tasks: BackgroundTasks,
    service: ProjectService = Depends(get_project_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    task = service.set_task_completed(task_id, data.completed)
    schedule_announcements(background_tasks, service, dispatcher)
    return task


@router.post("/tasks/{task_id}/file", response_model=TaskResponse)
async def upload_task_file(
    task_id: str,
    file: UploadFile = File(...),
    service: ProjectService = Depends(get_project_service),
    channel: FileTransferChannel = Depends(get_transfer_channel),
):
    """Upload a deliverable for a client task"""
    size = upload_size(file)

    def log_progress(percent: int, speed: float, eta: float) -> None:
        logger.debug(f"📤 {file.filename}: {percent}% at {speed / 1024:.0f} KB/s, eta {eta:.1f}s")

    return await service.attach_file(
        task_id,
        file.file,
        file.filename,
        size,
        channel,
        content_type=file.content_type,
        on_progress=log_progress,
    )


@router.delete("/tasks/{task_id}/file", response_model=TaskResponse)
async def delete_task_file(
    task_id: str,
    service: ProjectService = Depends(get_project_service),
    channel: FileTransferChannel = Depends(get_transfer_channel),
):
    return await service.remove_file(task_id, channel)


# ============================================================================
# REVISIONS
# ============================================================================


@router.post("/projects/{project_id}/revisions", response_model=RevisionResponse)
async def create_revision(
    project_id: str,
    data: RevisionCreate,
    background_tasks: BackgroundTasks,
    service: ProjectService = Depends(get_project_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    revision = service.create_revision(project_id, data)
    schedule_announcements(background_tasks, service, dispatcher)
    return revision


@router.patch("/revisions/{revision_id}", response_model=RevisionResponse)
async def update_revision(
    revision_id: str, data: RevisionUpdate, service: ProjectService = Depends(get_project_service)
):
    return service.update_revision(revision_id, data)


@router.delete("/revisions/{revision_id}", response_model=ProjectResponse)
async def delete_revision(
    revision_id: str,
    background_tasks: BackgroundTasks,
    service: ProjectService = Depends(get_project_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    project = service.delete_revision(revision_id)
    schedule_announcements(background_tasks, service, dispatcher)
    return project


# ============================================================================
# SEND TO CLIENT
# ============================================================================


@router.post("/projects/{project_id}/send", response_model=SendResponse)
async def send_to_client(
    project_id: str,
    data: Optional[SendRequest] = None,
    service: ProjectService = Depends(get_project_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Issue a magic link for the ready files and email it to the client"""
    result = await service.send_to_client(
        project_id, dispatcher, task_ids=data.task_ids if data else None
    )
    return SendResponse(**result.__dict__)
