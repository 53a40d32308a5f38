"""Project repository - Database operations for projects, tasks and revisions"""

from typing import Optional

from sqlalchemy import case
from sqlalchemy.orm import Session, selectinload

from ...models import Client, Project, ProjectStatus, Revision, Task


class ProjectRepository:
    """Repository for project database operations"""

    @staticmethod
    def get_projects(db: Session, client_id: Optional[str] = None) -> list[Project]:
        """Open projects by due date, completed projects last."""
        query = db.query(Project).options(
            selectinload(Project.tasks), selectinload(Project.revisions), selectinload(Project.client)
        )
        if client_id:
            query = query.filter(Project.client_id == client_id)
        completed_last = case((Project.status == ProjectStatus.COMPLETED.value, 1), else_=0)
        return query.order_by(completed_last, Project.due_date, Project.created_at).all()

    @staticmethod
    def get_project_by_id(db: Session, project_id: str) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def get_client_by_id(db: Session, client_id: str) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_task_by_id(db: Session, task_id: str) -> Optional[Task]:
        return db.query(Task).filter(Task.id == task_id).first()

    @staticmethod
    def get_revision_by_id(db: Session, revision_id: str) -> Optional[Revision]:
        return db.query(Revision).filter(Revision.id == revision_id).first()

    @staticmethod
    def next_position(project: Project) -> int:
        return max((t.position for t in project.tasks), default=-1) + 1
