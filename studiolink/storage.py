"""
File Transfer Channel - deliverable files in Cloudflare R2.

Objects live under ``{project_id}/`` in the bucket and are served from the public
R2 prefix, so the URL stored on a task is durable and needs no presigning.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import (
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_URL,
    R2_SECRET_ACCESS_KEY,
    STORAGE_CONNECT_TIMEOUT,
    STORAGE_READ_TIMEOUT,
    UPLOAD_MAX_ATTEMPTS,
)
from .errors import UploadAborted, UploadFailed
from .utils.sanitization import sanitize_filename

logger = logging.getLogger(__name__)

# UI callbacks are capped at 5 per second
PROGRESS_MIN_INTERVAL = 0.2

TRANSFER_CONFIG = TransferConfig(
    multipart_threshold=8 * 1024 * 1024,
    multipart_chunksize=8 * 1024 * 1024,
    max_concurrency=4,
)

ProgressCallback = Callable[[int, float, float], None]


def get_r2_client():
    """Create and return an R2 client with bounded timeouts."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(
            signature_version="s3v4",
            connect_timeout=STORAGE_CONNECT_TIMEOUT,
            read_timeout=STORAGE_READ_TIMEOUT,
            retries={"max_attempts": 2, "mode": "standard"},
        ),
    )


@dataclass
class StoredFile:
    stored_name: str  # object key inside the bucket
    public_url: str
    file_name: str  # original name shown to the client
    size: int


class TransferProgress:
    """
    Turns byte-count callbacks into throttled (percent, speed, eta) events.

    Speed is bytes moved since the previous event divided by the time since it;
    the window resets every time an event is emitted.
    """

    def __init__(
        self,
        total_bytes: int,
        on_progress: Optional[ProgressCallback] = None,
        clock: Callable[[], float] = time.monotonic,
        min_interval: float = PROGRESS_MIN_INTERVAL,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.total_bytes = max(int(total_bytes), 0)
        self.on_progress = on_progress
        self.clock = clock
        self.min_interval = min_interval
        self.cancel_event = cancel_event
        self.transferred = 0
        self.last_percent = 0
        self.last_speed = 0.0
        self._window_bytes = 0
        self._window_start = clock()
        self._finished = False
        self._lock = threading.Lock()  # s3transfer calls back from worker threads

    def __call__(self, bytes_amount: int) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise UploadAborted("Upload cancelled")

        with self._lock:
            self.transferred = min(self.transferred + bytes_amount, self.total_bytes)
            self._window_bytes += bytes_amount
            done = self.transferred >= self.total_bytes
            now = self.clock()
            elapsed = now - self._window_start

            if self._finished or (not done and elapsed < self.min_interval):
                return

            if elapsed > 0 and self._window_bytes > 0:
                speed = self._window_bytes / elapsed
            else:
                speed = self.last_speed
            if speed > 0:
                self.last_speed = speed

            remaining = self.total_bytes - self.transferred
            eta = remaining / speed if speed > 0 else 0.0
            percent = 100 if done else int(self.transferred * 100 / self.total_bytes)
            percent = max(percent, self.last_percent)

            self.last_percent = percent
            self._window_bytes = 0
            self._window_start = now
            self._finished = done

        if self.on_progress:
            self.on_progress(percent, speed, eta)


class FileTransferChannel:
    """Upload and delete project deliverables against one bucket."""

    def __init__(
        self,
        client=None,
        bucket: str = R2_BUCKET_NAME,
        public_url: str = R2_PUBLIC_URL,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self.clock = clock

    @property
    def client(self):
        if self._client is None:
            self._client = get_r2_client()
        return self._client

    def build_key(self, project_id: str, filename: str) -> str:
        """Timestamp plus a random fragment keeps same-named uploads apart."""
        stamp = int(self.clock() * 1000)
        return f"{project_id}/{stamp}-{uuid.uuid4().hex[:8]}-{sanitize_filename(filename)}"

    def public_url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    def key_for(self, public_url: Optional[str]) -> Optional[str]:
        prefix = f"{self.public_url}/"
        if not public_url or not public_url.startswith(prefix):
            return None
        return public_url[len(prefix):] or None

    def upload(
        self,
        project_id: str,
        fileobj: BinaryIO,
        filename: str,
        size: int,
        content_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> StoredFile:
        """Stream ``fileobj`` to storage, reporting progress along the way."""
        key = self.build_key(project_id, filename)
        progress = TransferProgress(size, on_progress, cancel_event=cancel_event)
        extra_args = {"ContentType": content_type or "application/octet-stream"}

        logger.info(f"📤 Uploading {filename} ({size} bytes) to {key}")
        try:
            self.client.upload_fileobj(
                fileobj,
                self.bucket,
                key,
                ExtraArgs=extra_args,
                Callback=progress,
                Config=TRANSFER_CONFIG,
            )
        except UploadAborted:
            logger.info(f"⚠️ Upload aborted by user: {key}")
            raise
        except (BotoCoreError, ClientError, S3UploadFailedError, OSError) as e:
            if cancel_event is not None and cancel_event.is_set():
                raise UploadAborted("Upload cancelled") from e
            logger.error(f"❌ Upload failed for {key}: {e}")
            raise UploadFailed(f"Upload failed: {e}") from e

        if size == 0:
            # s3transfer never calls back for an empty body
            progress(0)

        logger.info(f"✅ Uploaded {key}")
        return StoredFile(
            stored_name=key,
            public_url=self.public_url_for(key),
            file_name=filename,
            size=size,
        )

    def upload_with_retry(
        self,
        project_id: str,
        fileobj: BinaryIO,
        filename: str,
        size: int,
        max_attempts: int = UPLOAD_MAX_ATTEMPTS,
        **kwargs,
    ) -> StoredFile:
        """Retry network failures only; an abort ends the transfer immediately."""
        attempt = 1
        start = fileobj.tell() if fileobj.seekable() else None
        while True:
            try:
                return self.upload(project_id, fileobj, filename, size, **kwargs)
            except UploadFailed:
                if attempt >= max_attempts or start is None:
                    raise
                logger.warning(f"⚠️ Retrying upload of {filename} ({attempt}/{max_attempts})")
                attempt += 1
                fileobj.seek(start)

    def remove(self, public_url: Optional[str]) -> bool:
        """Delete the object behind ``public_url``. Foreign URLs are ignored."""
        key = self.key_for(public_url)
        if key is None:
            logger.warning(f"⚠️ Not a storage URL, nothing to delete: {public_url}")
            return False

        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Failed to delete {key}: {e}")
            raise UploadFailed(f"Failed to delete file: {e}") from e

        logger.info(f"🗑️ Deleted {key}")
        return True


def get_transfer_channel() -> FileTransferChannel:
    """Dependency hook; tests override it with a fake-backed channel."""
    return FileTransferChannel()
