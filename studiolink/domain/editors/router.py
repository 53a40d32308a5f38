"""Editor router - FastAPI endpoints for editor operations"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from .schemas import EditorCreate, EditorResponse, EditorUpdate
from .service import EditorService

router = APIRouter(prefix="/editors", tags=["Editors"], dependencies=[Depends(require_admin)])


def get_editor_service(db: Session = Depends(get_db)) -> EditorService:
    """Dependency injection for EditorService"""
    return EditorService(db)


@router.get("", response_model=list[EditorResponse])
async def get_editors(service: EditorService = Depends(get_editor_service)):
    return service.get_editors()


@router.post("", response_model=EditorResponse)
async def create_editor(data: EditorCreate, service: EditorService = Depends(get_editor_service)):
    return service.create_editor(data)


@router.patch("/{editor_id}", response_model=EditorResponse)
async def update_editor(
    editor_id: str, data: EditorUpdate, service: EditorService = Depends(get_editor_service)
):
    return service.update_editor(editor_id, data)


@router.delete("/{editor_id}")
async def delete_editor(editor_id: str, service: EditorService = Depends(get_editor_service)):
    return service.delete_editor(editor_id)
