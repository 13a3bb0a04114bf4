from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from io import BytesIO
from pathlib import Path

from PIL import Image

from blogweb.domain.errors import BackendError, ValidationError
from blogweb.infrastructure.database.supabase_client import Backend, error_message

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    filename: str
    data: bytes


@dataclass
class StorageResult:
    bucket: str
    path: str
    content_type: str
    size: int
    url: str


def epoch_millis(now: datetime | None = None) -> int:
    return int((now or datetime.now(UTC)).timestamp() * 1000)


def avatar_path(filename: str, now: datetime | None = None) -> str:
    """public/{millis}-{original filename}"""
    return f"public/{epoch_millis(now)}-{Path(filename).name}"


def post_image_path(user_id: str, filename: str, extension: str, now: datetime | None = None) -> str:
    """posts/{millis}-{user id}.{ext}, ext taken from the original filename when it has one."""
    name = Path(filename).name
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else extension
    return f"posts/{epoch_millis(now)}-{user_id}.{ext}"


def inspect_image(data: bytes) -> tuple[str, str]:
    """Return (content type, extension) of image bytes; reject anything Pillow cannot read."""
    if not data:
        raise ValidationError("Invalid image file: empty upload")
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except Exception as exc:
        raise ValidationError(f"Invalid image file: {exc}") from exc
    content_type = Image.MIME.get(fmt, "application/octet-stream")
    return content_type, (fmt or "bin").lower().replace("jpeg", "jpg")


class SupabaseStorage:
    """Storage adapter for Supabase Storage with a local fake fallback."""

    def __init__(self, backend: Backend) -> None:
        self.client = backend.client
        self.memory = backend.memory
        self.avatar_bucket = backend.config.avatar_bucket
        self.post_image_bucket = backend.config.post_image_bucket
        self.local_dir = Path(backend.config.local_storage_dir)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> StorageResult:
        if self.client is None:
            # local fake storage
            full_path = self.local_dir / bucket / path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
            self.memory.objects[(bucket, path)] = data
        else:
            try:  # pragma: no cover - network
                self.client.storage.from_(bucket).upload(
                    path=path,
                    file=data,
                    file_options={"content-type": content_type},
                )
            except Exception as exc:
                raise BackendError(error_message(exc)) from exc
        logger.info("Uploaded %s bytes to %s/%s", len(data), bucket, path)
        return StorageResult(
            bucket=bucket,
            path=path,
            content_type=content_type,
            size=len(data),
            url=self.get_public_url(bucket, path),
        )

    def get_public_url(self, bucket: str, path: str) -> str:
        if self.client is None:
            return f"/local-storage/{bucket}/{path}"
        return self.client.storage.from_(bucket).get_public_url(path)  # pragma: no cover - network

    def upload_avatar(self, file: UploadedFile, now: datetime | None = None) -> StorageResult:
        content_type, _ = inspect_image(file.data)
        return self.upload(self.avatar_bucket, avatar_path(file.filename, now), file.data, content_type)

    def upload_post_image(
        self, user_id: str, file: UploadedFile, now: datetime | None = None
    ) -> StorageResult:
        content_type, extension = inspect_image(file.data)
        path = post_image_path(user_id, file.filename, extension, now)
        return self.upload(self.post_image_bucket, path, file.data, content_type)
