"""
Object Storage with Concurrency Control

Local filesystem buckets for uploaded images:
- gallery: public gallery pictures
- products: menu product pictures
- hero: homepage hero backgrounds
- logos: restaurant logos

Every write happens under a per-bucket file lock and is retried a fixed
number of times on I/O errors. Objects get unique names, so uploads never
overwrite each other.

The API is synchronous; async callers run it in a worker thread.
"""

import asyncio
import logging
import mimetypes
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from filelock import FileLock, Timeout
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import GalleryImage

logger = logging.getLogger(__name__)

BUCKETS = ("gallery", "products", "hero", "logos")

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "svg"}


class StorageError(Exception):
    """Base class for storage failures."""


class InvalidUploadError(StorageError):
    """The upload was refused (bucket, type or size)."""


@dataclass
class StoredObject:
    bucket: str
    path: str
    url: str
    size: int

    def to_dict(self) -> dict:
        return {"bucket": self.bucket, "path": self.path, "url": self.url, "size": self.size}


class ObjectStorage:
    """
    Bucketed file storage rooted at one directory.

    Example:
        >>> storage = ObjectStorage("data/uploads", base_url="/uploads")
        >>> stored = storage.upload("gallery", "pizza.jpg", data, "image/jpeg")
        >>> stored.url
        '/uploads/gallery/1718000000000-1a2b3c4d.jpg'
    """

    def __init__(
        self,
        root: Union[str, Path],
        base_url: str = "/uploads",
        max_bytes: int = 10 * 1024 * 1024,
        attempts: int = 3,
        lock_timeout: float = 30,
    ):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.attempts = max(1, attempts)
        self.lock_timeout = lock_timeout

    def _bucket_dir(self, bucket: str) -> Path:
        if bucket not in BUCKETS:
            raise InvalidUploadError(f"Unknown bucket '{bucket}'. Options: {', '.join(BUCKETS)}")
        directory = self.root / bucket
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def _lock(self, bucket: str) -> FileLock:
        return FileLock(str(self.root / f".{bucket}.lock"), timeout=self.lock_timeout)

    def _object_path(self, bucket: str, path: str) -> Path:
        target = (self._bucket_dir(bucket) / path).resolve()
        if target.parent != (self.root / bucket).resolve():
            raise InvalidUploadError(f"Invalid object path '{path}'")
        return target

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"

    @staticmethod
    def _extension(filename: str, content_type: str) -> str:
        suffix = Path(filename).suffix.lower().lstrip(".")
        if suffix in ALLOWED_EXTENSIONS:
            return "jpg" if suffix == "jpeg" else suffix
        return ALLOWED_CONTENT_TYPES[content_type]

    def validate(self, filename: str, data: bytes, content_type: Optional[str]) -> str:
        """
        Check an upload and return its normalized content type.

        A missing or generic content type is guessed from the file name.
        """
        if not content_type or content_type == "application/octet-stream":
            content_type = mimetypes.guess_type(filename)[0] or ""
        content_type = content_type.lower()

        if content_type not in ALLOWED_CONTENT_TYPES:
            raise InvalidUploadError(f"Invalid file type '{content_type or 'unknown'}'. Expected an image.")
        if not data:
            raise InvalidUploadError("Empty file")
        if len(data) > self.max_bytes:
            raise InvalidUploadError(
                f"File too large ({len(data) / 1024 / 1024:.1f} MB). "
                f"Maximum is {self.max_bytes / 1024 / 1024:g} MB."
            )
        return content_type

    def upload(
        self,
        bucket: str,
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> StoredObject:
        """
        Store an image under a unique name.

        Raises:
            InvalidUploadError: bucket, type or size refused
            StorageError: every write attempt failed
        """
        content_type = self.validate(filename, data, content_type)
        directory = self._bucket_dir(bucket)
        name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.{self._extension(filename, content_type)}"
        target = directory / name

        last_error: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                with self._lock(bucket):
                    target.write_bytes(data)
                logger.info(f"Stored {bucket}/{name} ({len(data)} bytes)")
                return StoredObject(bucket=bucket, path=name, url=self.public_url(bucket, name), size=len(data))
            except Timeout as e:
                last_error = e
                logger.warning(f"Lock timeout on bucket '{bucket}' (attempt {attempt}/{self.attempts})")
            except OSError as e:
                last_error = e
                logger.warning(f"Write of {bucket}/{name} failed (attempt {attempt}/{self.attempts}): {e}")

        raise StorageError(f"Upload to '{bucket}' failed after {self.attempts} attempts: {last_error}")

    def delete(self, bucket: str, path: str) -> bool:
        """Returns False if the object does not exist."""
        target = self._object_path(bucket, path)
        with self._lock(bucket):
            if not target.exists():
                return False
            target.unlink()
        logger.info(f"Deleted {bucket}/{path}")
        return True

    def list_objects(self, bucket: str) -> list[StoredObject]:
        """Objects of a bucket, oldest first."""
        directory = self._bucket_dir(bucket)
        return [
            StoredObject(bucket=bucket, path=f.name, url=self.public_url(bucket, f.name), size=f.stat().st_size)
            for f in sorted(directory.iterdir())
            if f.is_file() and not f.name.startswith(".")
        ]


# =============================================================================
# GALLERY
# =============================================================================

async def add_gallery_image(
    db: AsyncSession,
    stored: StoredObject,
    title: Optional[str] = None,
    sort_order: int = 0,
) -> GalleryImage:
    image = GalleryImage(
        bucket=stored.bucket,
        path=stored.path,
        url=stored.url,
        title=title,
        sort_order=sort_order,
    )
    db.add(image)
    await db.commit()
    await db.refresh(image)
    return image


async def list_gallery_images(db: AsyncSession, active_only: bool = True) -> list[GalleryImage]:
    query = select(GalleryImage).order_by(GalleryImage.sort_order, GalleryImage.id)
    if active_only:
        query = query.where(GalleryImage.is_active.is_(True))
    return list(await db.scalars(query))


async def delete_gallery_image(db: AsyncSession, storage: ObjectStorage, image_id: int) -> bool:
    """Remove the row and, best effort, the stored file."""
    image = await db.get(GalleryImage, image_id)
    if image is None:
        return False

    try:
        await asyncio.to_thread(storage.delete, image.bucket, image.path)
    except (OSError, StorageError) as e:
        logger.warning(f"Could not delete file of gallery image #{image_id}: {e}")

    await db.delete(image)
    await db.commit()
    return True
