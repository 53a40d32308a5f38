"""Editor repository - Database operations for editors"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Editor


class EditorRepository:
    @staticmethod
    def get_editors(db: Session) -> list[Editor]:
        return db.query(Editor).order_by(Editor.name).all()

    @staticmethod
    def get_editor_by_id(db: Session, editor_id: str) -> Optional[Editor]:
        return db.query(Editor).filter(Editor.id == editor_id).first()

    @staticmethod
    def create_editor(db: Session, **editor_data) -> Editor:
        editor = Editor(**editor_data)
        db.add(editor)
        db.commit()
        db.refresh(editor)
        return editor

    @staticmethod
    def update_editor(db: Session, editor: Editor, **updates) -> Editor:
        for key, value in updates.items():
            if value is not None and hasattr(editor, key):
                setattr(editor, key, value)
        db.commit()
        db.refresh(editor)
        return editor

    @staticmethod
    def delete_editor(db: Session, editor: Editor) -> None:
        db.delete(editor)
        db.commit()
