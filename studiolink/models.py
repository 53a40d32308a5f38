import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base

# Transient marker for a file slot whose upload is still streaming; never stored
UPLOADING_SENTINEL = "uploading"


def generate_id():
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ProjectStatus(str, enum.Enum):
    PROGRESS = "progress"
    REVISION = "revision"
    COMPLETED = "completed"


class TaskRole(str, enum.Enum):
    EDITOR = "editor"
    CLIENT = "client"


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    projects = relationship("Project", back_populates="client")


class Service(Base):
    """Catalog entry: an ordered list of task templates."""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False, unique=True, index=True)
    tasks = Column(JSON, default=list, nullable=False)  # ["Submit Photos to editor", ...]
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Editor(Base):
    __tablename__ = "editors"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    avatar = Column(String(16), default="👤", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), default=ProjectStatus.PROGRESS.value, nullable=False)
    services = Column(JSON, default=list, nullable=False)  # selected service names
    service_types = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    client = relationship("Client", back_populates="projects")
    tasks = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Task.position",
    )
    revisions = relationship(
        "Revision",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Revision.created_at",
    )
    magic_links = relationship(
        "MagicLink", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def client_tasks(self) -> list["Task"]:
        return [t for t in self.tasks if t.is_client_task]

    def derive_status(self) -> ProjectStatus:
        """completed iff every task is complete, else revision iff any revision exists."""
        if self.tasks and all(t.completed for t in self.tasks):
            return ProjectStatus.COMPLETED
        if self.revisions:
            return ProjectStatus.REVISION
        return ProjectStatus.PROGRESS


class Revision(Base):
    __tablename__ = "revisions"

    id = Column(String(36), primary_key=True, default=generate_id)
    project_id = Column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(255), nullable=False)  # service type being revised
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    project = relationship("Project", back_populates="revisions")
    tasks = relationship(
        "Task", back_populates="revision", cascade="all", passive_deletes=True
    )


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=generate_id)
    project_id = Column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    revision_id = Column(
        String(36), ForeignKey("revisions.id", ondelete="CASCADE"), nullable=True, index=True
    )
    position = Column(Integer, default=0, nullable=False)  # checklist order within project
    text = Column(String(500), nullable=False)  # display label, e.g. "Submit Photos to client"
    service_type = Column(String(255), nullable=True)  # structured type, e.g. "Photos"
    is_editor_task = Column(Boolean, default=False, nullable=False)
    is_client_task = Column(Boolean, default=False, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    file_name = Column(String(500), nullable=True)
    file_url = Column(String(1000), nullable=True)
    sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime, nullable=True)

    project = relationship("Project", back_populates="tasks")
    revision = relationship("Revision", back_populates="tasks")

    @property
    def role(self):
        if self.is_client_task:
            return TaskRole.CLIENT
        if self.is_editor_task:
            return TaskRole.EDITOR
        return None

    @property
    def has_file(self) -> bool:
        return bool(self.file_url) and self.file_url != UPLOADING_SENTINEL

    @property
    def is_ready(self) -> bool:
        """Client task whose file is attached and releasable."""
        return self.is_client_task and self.has_file

    @property
    def client_label(self) -> str:
        """Name of the deliverable as the client sees it."""
        if self.service_type:
            return f"{self.service_type} Revision" if self.revision_id else self.service_type
        label = self.text
        if label.startswith("Submit "):
            label = label[len("Submit "):]
        for suffix in (" to client", " to editor"):
            if label.endswith(suffix):
                label = label[: -len(suffix)]
        return label


class MagicLink(Base):
    __tablename__ = "magic_links"

    id = Column(String(36), primary_key=True, default=generate_id)
    token = Column(String(128), unique=True, index=True, nullable=False)
    project_id = Column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    task_ids = Column(JSON, default=list, nullable=False)  # ready when issued
    pending_task_ids = Column(JSON, default=list, nullable=False)  # no file yet when issued
    created_at = Column(DateTime, default=utcnow, nullable=False)
    accessed_at = Column(DateTime, nullable=True)  # first successful resolve only
    revoked_at = Column(DateTime, nullable=True)

    project = relationship("Project", back_populates="magic_links")
    client = relationship("Client")
