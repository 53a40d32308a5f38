"""Tests for the admin's optimistic projection and the session that drives it."""

import asyncio
import io

import pytest
from sqlalchemy.exc import OperationalError

from studiolink.admin import AdminSession, Projection
from studiolink.domain.projects.repository import ProjectRepository
from studiolink.domain.projects.service import ProjectService
from studiolink.errors import NotificationFailed, StoreFailed, UploadFailed, UploadInProgress
from studiolink.models import UPLOADING_SENTINEL


def project_row():
    return {
        "id": "p1",
        "name": "12 Ocean Drive",
        "status": "progress",
        "tasks": [
            {"id": "t2", "position": 1, "completed": False, "file_url": None, "file_name": None},
            {"id": "t1", "position": 0, "completed": False, "file_url": None, "file_name": None},
        ],
    }


class TestProjection:
    """Test applying, confirming and rolling back local mutations."""

    @pytest.fixture
    def projection(self):
        projection = Projection()
        projection.load([project_row()])
        return projection

    def test_tasks_in_position_order(self, projection):
        """Test that tasks read back in checklist order."""
        assert [t["id"] for t in projection.tasks("p1")] == ["t1", "t2"]

    def test_apply_and_rollback(self, projection):
        """Test that a rollback restores exactly the overwritten fields."""
        mutation = projection.apply("toggle_task", "t1", {"completed": True})
        assert projection.find_task("t1")[1]["completed"] is True
        assert mutation.id in projection.pending

        projection.rollback(mutation)

        assert projection.find_task("t1")[1]["completed"] is False
        assert projection.pending == {}

    def test_rollback_keeps_later_changes(self, projection):
        """Test that undoing an older mutation leaves a newer value alone."""
        first = projection.apply("toggle_task", "t1", {"completed": True})
        projection.apply("toggle_task", "t1", {"completed": False})
        projection.find_task("t1")[1]["completed"] = "newer"

        projection.rollback(first)

        assert projection.find_task("t1")[1]["completed"] == "newer"

    def test_confirm_adopts_store_row(self, projection):
        """Test that confirming with a row replaces the local task."""
        mutation = projection.apply("attach_file", "t1", {"file_url": UPLOADING_SENTINEL})
        assert projection.is_uploading("t1")

        projection.confirm(mutation, {"id": "t1", "position": 0, "file_url": "https://cdn.test/a.zip"})

        assert not projection.is_uploading("t1")
        assert projection.find_task("t1")[1]["file_url"] == "https://cdn.test/a.zip"
        assert projection.pending == {}

    def test_reload_drops_pending(self, projection):
        """Test that reloading a project forgets its unconfirmed mutations."""
        projection.apply("toggle_task", "t1", {"completed": True})
        projection.reload("p1", project_row())

        assert projection.pending == {}
        assert projection.find_task("t1")[1]["completed"] is False

    def test_reload_removed_project(self, projection):
        """Test that a project deleted in the store leaves the projection."""
        projection.reload("p1", None)
        with pytest.raises(KeyError):
            projection.find_task("t1")


@pytest.fixture
def session(channel, sent_emails):
    return AdminSession(channel)


@pytest.fixture
def project(make_project):
    return make_project()


class TestAdminSession:
    """Test admin commands against the real services."""

    def test_refresh(self, session, project):
        """Test loading the working set."""
        projection = session.refresh()
        assert [t["id"] for t in projection.tasks(project.id)] == [t.id for t in project.tasks]

    def test_toggle(self, session, project):
        """Test that a confirmed toggle carries the stored row."""
        session.refresh()
        task_id = project.tasks[0].id

        row = asyncio.run(session.toggle_task(task_id))

        assert row["completed"] is True
        assert session.projection.pending == {}

    def test_store_failure_reloads(self, session, project, monkeypatch):
        """Test that a failed write rolls back and reloads the project from the store."""
        session.refresh()
        task_id = project.tasks[0].id
        session.projection.project(project.id)["name"] = "stale local copy"

        def broken(self, task_id, completed):
            raise StoreFailed("Could not update the task")

        monkeypatch.setattr(ProjectService, "set_task_completed", broken)

        with pytest.raises(StoreFailed):
            asyncio.run(session.toggle_task(task_id))

        assert session.projection.find_task(task_id)[1]["completed"] is False
        assert session.projection.project(project.id)["name"] == "12 Ocean Drive"

    def test_upload(self, session, project, client_task, fake_s3):
        """Test that the slot shows as uploading until the store confirms."""
        session.refresh()
        task = client_task(project, "Photos")
        seen = []

        def on_progress(percent, speed, eta):
            seen.append(session.projection.is_uploading(task.id))

        row = asyncio.run(
            session.upload_file(task.id, io.BytesIO(b"x" * 4096), "photos.zip", 4096, on_progress=on_progress)
        )

        assert seen and all(seen)
        assert row["file_name"] == "photos.zip"
        assert row["file_url"] != UPLOADING_SENTINEL
        assert len(fake_s3.objects) == 1

    def test_database_error_rolls_back_upload(self, session, project, client_task, fake_s3, monkeypatch):
        """Test that a dropped connection frees the slot so the upload can be retried."""
        session.refresh()
        task = client_task(project, "Photos")

        def dropped_connection(db, task_id):
            raise OperationalError("SELECT tasks", {}, Exception("server closed the connection"))

        with monkeypatch.context() as patch:
            patch.setattr(ProjectRepository, "get_task_by_id", staticmethod(dropped_connection))
            with pytest.raises(StoreFailed):
                asyncio.run(session.upload_file(task.id, io.BytesIO(b"x"), "photos.zip", 1))

        assert not session.projection.is_uploading(task.id)
        assert session.projection.pending == {}

        row = asyncio.run(session.upload_file(task.id, io.BytesIO(b"x"), "photos.zip", 1))
        assert row["file_name"] == "photos.zip"

    def test_database_error_rolls_back_toggle(self, session, project, monkeypatch):
        """Test that a raw database error on toggle restores the stored value."""
        session.refresh()
        task_id = project.tasks[0].id

        def dropped_connection(db, task_id):
            raise OperationalError("SELECT tasks", {}, Exception("server closed the connection"))

        monkeypatch.setattr(ProjectRepository, "get_task_by_id", staticmethod(dropped_connection))

        with pytest.raises(StoreFailed):
            asyncio.run(session.toggle_task(task_id))

        assert session.projection.find_task(task_id)[1]["completed"] is False
        assert session.projection.pending == {}

    def test_one_upload_per_slot(self, session, project, client_task, fake_s3):
        """Test that a second upload into a busy slot is refused."""
        session.refresh()
        task = client_task(project, "Photos")
        session.projection.apply("attach_file", task.id, {"file_url": UPLOADING_SENTINEL})

        with pytest.raises(UploadInProgress):
            asyncio.run(session.upload_file(task.id, io.BytesIO(b"x"), "photos.zip", 1))
        assert fake_s3.upload_calls == 0

    def test_failed_upload_rolls_back(self, session, project, client_task, fake_s3):
        """Test that a transfer failure restores the empty slot."""
        session.refresh()
        task = client_task(project, "Photos")
        fake_s3.fail_times = 10

        with pytest.raises(UploadFailed):
            asyncio.run(session.upload_file(task.id, io.BytesIO(b"x" * 10), "photos.zip", 10))

        row = session.projection.find_task(task.id)[1]
        assert row["file_url"] is None and row["file_name"] is None
        assert session.projection.pending == {}

    def test_cancel_without_upload(self, session):
        """Test cancelling when nothing is uploading."""
        assert session.cancel_upload("t1") is False

    def test_remove_file(self, session, project, client_task):
        """Test removing an uploaded file."""
        session.refresh()
        task = client_task(project, "Photos")
        asyncio.run(session.upload_file(task.id, io.BytesIO(b"x"), "photos.zip", 1))

        row = asyncio.run(session.remove_file(task.id))

        assert row["file_url"] is None

    def test_send(self, session, project, client_task, attach):
        """Test that a send ends with the store's view of the sent tasks."""
        task = attach(client_task(project, "Photos"))
        session.refresh()

        result = asyncio.run(session.send(project.id))

        assert result.sent_task_ids == [task.id]
        row = session.projection.find_task(task.id)[1]
        assert row["sent"] is True and row["completed"] is True
        assert session.projection.pending == {}

    def test_failed_send_rolls_back(self, channel, project, client_task, attach, failing_resend):
        """Test that a refused mail leaves the tasks unsent locally."""
        session = AdminSession(channel)
        task = attach(client_task(project, "Photos"))
        session.refresh()

        with pytest.raises(NotificationFailed) as exc_info:
            asyncio.run(session.send(project.id))

        assert exc_info.value.extra["download_url"]
        row = session.projection.find_task(task.id)[1]
        assert row["sent"] is False and row["completed"] is False
