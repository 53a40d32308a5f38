"""Magic link repository - token rows and the task lookups the validator needs"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import MagicLink, Project, Task


class MagicLinkRepository:
    """Repository for magic link database operations"""

    @staticmethod
    def create_link(db: Session, **link_data) -> MagicLink:
        link = MagicLink(**link_data)
        db.add(link)
        db.commit()
        db.refresh(link)
        return link

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[MagicLink]:
        return db.query(MagicLink).filter(MagicLink.token == token).first()

    @staticmethod
    def get_by_id(db: Session, link_id: str) -> Optional[MagicLink]:
        return db.query(MagicLink).filter(MagicLink.id == link_id).first()

    @staticmethod
    def get_links_for_project(db: Session, project_id: str) -> list[MagicLink]:
        return (
            db.query(MagicLink)
            .filter(MagicLink.project_id == project_id)
            .order_by(MagicLink.created_at.desc())
            .all()
        )

    @staticmethod
    def get_project(db: Session, project_id: str) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def get_tasks_by_ids(db: Session, project_id: str, task_ids: list[str]) -> dict[str, Task]:
        if not task_ids:
            return {}
        tasks = (
            db.query(Task)
            .filter(Task.project_id == project_id, Task.id.in_(task_ids))
            .all()
        )
        return {t.id: t for t in tasks}

    @staticmethod
    def mark_accessed(db: Session, link_id: str, accessed_at: datetime) -> bool:
        """Set accessed_at only if it is still NULL. Returns True for the first caller."""
        result = db.execute(
            update(MagicLink)
            .where(MagicLink.id == link_id, MagicLink.accessed_at.is_(None))
            .values(accessed_at=accessed_at)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    @staticmethod
    def revoke(db: Session, link: MagicLink, revoked_at: datetime) -> MagicLink:
        if link.revoked_at is None:
            link.revoked_at = revoked_at
            db.commit()
            db.refresh(link)
        return link
