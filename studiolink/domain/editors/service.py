"""Editor service"""

import logging

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import Editor
from .repository import EditorRepository
from .schemas import EditorCreate, EditorUpdate

logger = logging.getLogger(__name__)


class EditorService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = EditorRepository()

    def get_editors(self) -> list[Editor]:
        return self.repo.get_editors(self.db)

    def get_editor(self, editor_id: str) -> Editor:
        editor = self.repo.get_editor_by_id(self.db, editor_id)
        if not editor:
            raise NotFoundError("Editor not found")
        return editor

    def create_editor(self, data: EditorCreate) -> Editor:
        editor = self.repo.create_editor(self.db, **data.model_dump())
        logger.info(f"✅ Editor created: {editor.id} ({editor.name})")
        return editor

    def update_editor(self, editor_id: str, data: EditorUpdate) -> Editor:
        editor = self.get_editor(editor_id)
        return self.repo.update_editor(self.db, editor, **data.model_dump(exclude_unset=True))

    def delete_editor(self, editor_id: str) -> dict:
        editor = self.get_editor(editor_id)
        self.repo.delete_editor(self.db, editor)
        return {"message": "Editor deleted"}
