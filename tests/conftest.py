"""Shared fixtures: in-memory database, fake R2 bucket and captured Resend sends."""

import os

# Configuration is read at import time, so the environment is set up first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_PASSWORD"] = "test-admin-password"
os.environ["RESEND_API_KEY"] = "re_test_key"
os.environ["NOTIFY_EMAILS"] = "ops@studio.test"
os.environ["APP_URL"] = "https://studio.test"
os.environ["R2_PUBLIC_URL"] = "https://files.studio.test/project-files"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("RESEND_WEBHOOK_SECRET", None)

from datetime import date  # noqa: E402

import pytest  # noqa: E402
import resend  # noqa: E402
from botocore.exceptions import EndpointConnectionError  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from studiolink import rate_limiter  # noqa: E402
from studiolink.database import Base, SessionLocal, engine  # noqa: E402
from studiolink.domain.projects.schemas import ProjectCreate  # noqa: E402
from studiolink.domain.projects.service import ProjectService  # noqa: E402
from studiolink.main import app  # noqa: E402
from studiolink.models import Client, Service  # noqa: E402
from studiolink.storage import FileTransferChannel, get_transfer_channel  # noqa: E402

PUBLIC_URL = os.environ["R2_PUBLIC_URL"]
ADMIN_HEADERS = {"Authorization": f"Bearer {os.environ['ADMIN_PASSWORD']}"}


class RelayError(Exception):
    """Shaped like the Resend SDK errors: carries error_type and code."""

    def __init__(self, message, error_type, code):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code


class FakeS3Client:
    """Stands in for the boto3 R2 client. Streams uploads in chunks through the callback."""

    def __init__(self, chunk_size=256 * 1024, fail_times=0):
        self.chunk_size = chunk_size
        self.fail_times = fail_times
        self.objects = {}
        self.deleted = []
        self.upload_calls = 0

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None, Callback=None, Config=None):
        self.upload_calls += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise EndpointConnectionError(endpoint_url="https://r2.test")
        body = b""
        while True:
            chunk = fileobj.read(self.chunk_size)
            if not chunk:
                break
            body += chunk
            if Callback:
                Callback(len(chunk))
        self.objects[key] = body

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        self.objects.pop(Key, None)
        return {}


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def channel(fake_s3):
    return FileTransferChannel(client=fake_s3, bucket="project-files", public_url=PUBLIC_URL)


@pytest.fixture
def sent_emails(monkeypatch):
    """Every payload handed to resend.Emails.send, in order."""
    sent = []

    def fake_send(params):
        sent.append(params)
        return {"id": f"email_{len(sent)}"}

    monkeypatch.setattr(resend, "api_key", "re_test_key")
    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return sent


@pytest.fixture
def failing_resend(monkeypatch):
    """Resend rejects client mail with a rate limit error but accepts ops mail."""
    sent = []

    def fake_send(params):
        if params["to"] != ["ops@studio.test"]:
            raise RelayError("Too many requests", error_type="rate_limit_exceeded", code=429)
        sent.append(params)
        return {"id": f"email_{len(sent)}"}

    monkeypatch.setattr(resend, "api_key", "re_test_key")
    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return sent


@pytest.fixture
def api(channel):
    app.dependency_overrides[get_transfer_channel] = lambda: channel
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def catalog(db):
    services = [
        Service(name="Photography", tasks=["Submit Photos to editor", "Submit Photos to client"]),
        Service(
            name="Floor Plan",
            tasks=["Submit Floor Plan to editor", "Submit Floor Plan to client"],
        ),
        Service(name="Site Plan", tasks=["Submit Site Plan to editor", "Submit Site Plan to client"]),
        Service(name="Video", tasks=["Submit Video to editor", "Submit Video to client"]),
    ]
    db.add_all(services)
    db.commit()
    return {s.name: s for s in services}


@pytest.fixture
def studio_client(db):
    client = Client(name="Harbour Realty", email="agent@harbour.test", notes="Prefers mornings")
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@pytest.fixture
def make_project(db, catalog, studio_client):
    def _make(services=("Photography", "Video"), name="12 Ocean Drive", due=date(2026, 11, 1)):
        service = ProjectService(db)
        return service.create_project(
            ProjectCreate(
                name=name, client_id=studio_client.id, due_date=due, services=list(services)
            )
        )

    return _make


@pytest.fixture
def attach(db):
    """Give a task a stored file without going through storage."""

    def _attach(task, name="photos.zip"):
        task.file_name = name
        task.file_url = f"{PUBLIC_URL}/{task.project_id}/1700000000000-abcd1234-{name}"
        db.commit()
        db.refresh(task)
        return task

    return _attach


@pytest.fixture
def client_task():
    """The original (non-revision) client task for a service type."""

    def _find(project, service_type):
        return next(
            t
            for t in project.tasks
            if t.is_client_task and t.service_type == service_type and not t.revision_id
        )

    return _find
