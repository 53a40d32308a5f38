"""
Optimistic projection of the admin's working set.

The admin UI reads from this in-memory copy of projects and tasks. Every local
change goes through a PendingMutation that remembers the fields it overwrote, so
the change can be confirmed with the row the store returned or rolled back
exactly. The "uploading" file sentinel only ever exists here.
"""

import logging
import time
import uuid
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..models import UPLOADING_SENTINEL

logger = logging.getLogger(__name__)


@dataclass
class PendingMutation:
    id: str
    kind: str
    project_id: str
    target: str  # task id
    before: dict[str, Any]
    after: dict[str, Any]
    created_at: float = field(default_factory=time.monotonic)


class Projection:
    """Projects keyed by id, each holding its task rows keyed by task id."""

    def __init__(self):
        self.projects: dict[str, dict] = {}
        self.pending: dict[str, PendingMutation] = {}

    # ---------------------------------------------------------------- loading

    def load(self, projects: Iterable[dict]) -> None:
        """Replace the whole projection with fresh rows from the store."""
        self.projects = {}
        self.pending = {}
        for project in projects:
            self._put(project)

    def reload(self, project_id: str, project: Optional[dict]) -> None:
        """Replace one project with the store's copy and forget its pending mutations."""
        self.pending = {k: m for k, m in self.pending.items() if m.project_id != project_id}
        if project is None:
            self.projects.pop(project_id, None)
        else:
            self._put(project)
        logger.info(f"🔄 Projection reloaded project {project_id}")

    def _put(self, project: dict) -> None:
        project = deepcopy(project)
        tasks = project.pop("tasks", [])
        project["tasks"] = {t["id"]: t for t in tasks}
        self.projects[project["id"]] = project

    # ---------------------------------------------------------------- reading

    def project(self, project_id: str) -> dict:
        return self.projects[project_id]

    def tasks(self, project_id: str) -> list[dict]:
        return sorted(self.projects[project_id]["tasks"].values(), key=lambda t: t["position"])

    def find_task(self, task_id: str) -> tuple[str, dict]:
        for project_id, project in self.projects.items():
            task = project["tasks"].get(task_id)
            if task is not None:
                return project_id, task
        raise KeyError(task_id)

    def is_uploading(self, task_id: str) -> bool:
        try:
            _, task = self.find_task(task_id)
        except KeyError:
            return False
        return task.get("file_url") == UPLOADING_SENTINEL

    # --------------------------------------------------------------- mutating

    def apply(self, kind: str, task_id: str, patch: dict[str, Any]) -> PendingMutation:
        """Patch a task locally and record how to undo it."""
        project_id, task = self.find_task(task_id)
        mutation = PendingMutation(
            id=uuid.uuid4().hex,
            kind=kind,
            project_id=project_id,
            target=task_id,
            before={key: deepcopy(task.get(key)) for key in patch},
            after=dict(patch),
        )
        task.update(patch)
        self.pending[mutation.id] = mutation
        return mutation

    def confirm(self, mutation: PendingMutation, row: Optional[dict] = None) -> None:
        """Settle a mutation, adopting the authoritative row when one is given."""
        self.pending.pop(mutation.id, None)
        if row is None:
            return
        project = self.projects.get(mutation.project_id)
        if project is not None:
            project["tasks"][row["id"]] = deepcopy(row)

    def rollback(self, mutation: PendingMutation) -> None:
        """Restore exactly the fields this mutation overwrote."""
        self.pending.pop(mutation.id, None)
        project = self.projects.get(mutation.project_id)
        task = project["tasks"].get(mutation.target) if project else None
        if task is None:
            return
        # A later mutation may already have replaced these fields
        for key, value in mutation.before.items():
            if task.get(key) == mutation.after.get(key):
                task[key] = value
        logger.info(f"↩️ Rolled back {mutation.kind} on task {mutation.target}")

    def set_project_fields(self, project_id: str, **fields) -> None:
        project = self.projects.get(project_id)
        if project is not None:
            project.update(fields)
