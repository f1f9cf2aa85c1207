"""
Image storage for post pictures.

Two backends with the same surface:

  LocalImageStore — files under `images_dir`, served by the app at /images
  MinioImageStore — objects in a MinIO (S3-compatible) bucket via boto3

`save()` returns the stored path (`images/<uuid>.<ext>`) that clients pass
back in create/update calls. `release()` deletes a previously stored image;
it never raises, a missing or foreign path is only logged.
"""
import logging
import os
import uuid
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from livefeed.config import Settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg": "jpeg", ".jpg": "jpg", ".png": "png"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png"}
STORED_PREFIX = "images"


class UnsupportedImage(ValueError):
    pass


class ImageStore(Protocol):
    def save(self, data: bytes, filename: str, content_type: Optional[str]) -> str: ...

    def release(self, path: str) -> bool: ...


def check_image(filename: str, content_type: Optional[str]) -> str:
    """Return the normalised extension, or raise if the upload is not an image we accept.

    Both the file extension and the declared content type must match.
    """
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS or (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedImage("Only jpeg, jpg & png files are allowed.")
    return ALLOWED_EXTENSIONS[ext]


def _new_name(ext: str) -> str:
    return f"{uuid.uuid4()}.{ext}"


def _stored_name(path: str) -> Optional[str]:
    """Extract `<name>` from `images/<name>`; None for anything else."""
    parts = PurePosixPath(path.replace("\\", "/").lstrip("/")).parts
    if len(parts) != 2 or parts[0] != STORED_PREFIX or parts[1] in ("", ".", ".."):
        return None
    return parts[1]


class LocalImageStore:
    def __init__(self, root: str) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def save(self, data: bytes, filename: str, content_type: Optional[str]) -> str:
        name = _new_name(check_image(filename, content_type))
        (self.root / name).write_bytes(data)
        logger.debug("Stored image %s (%d bytes)", name, len(data))
        return f"{STORED_PREFIX}/{name}"

    def exists(self, path: str) -> bool:
        name = _stored_name(path)
        return name is not None and (self.root / name).is_file()

    def release(self, path: str) -> bool:
        name = _stored_name(path)
        if name is None:
            logger.warning("Refusing to release image outside the store: %s", path)
            return False
        try:
            (self.root / name).unlink()
        except OSError as exc:
            logger.warning("Could not release image %s: %s", path, exc)
            return False
        logger.debug("Released image %s", path)
        return True


class MinioImageStore:
    def __init__(self, settings: Settings) -> None:
        scheme = "https" if settings.minio_use_ssl else "http"
        self.bucket = settings.minio_bucket
        self._s3 = boto3.client(
            "s3",
            endpoint_url=f"{scheme}://{settings.minio_endpoint}",
            aws_access_key_id=settings.minio_access_key,
            aws_secret_access_key=settings.minio_secret_key,
            config=Config(signature_version="s3v4"),
            region_name="us-east-1",
        )

    def ensure_bucket(self) -> None:
        existing = [b["Name"] for b in self._s3.list_buckets().get("Buckets", [])]
        if self.bucket not in existing:
            self._s3.create_bucket(Bucket=self.bucket)
            logger.info("Created MinIO bucket '%s'", self.bucket)
        else:
            logger.info("MinIO bucket '%s' already exists", self.bucket)

    def save(self, data: bytes, filename: str, content_type: Optional[str]) -> str:
        key = f"{STORED_PREFIX}/{_new_name(check_image(filename, content_type))}"
        self._s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=BytesIO(data),
            ContentType=content_type,
        )
        logger.debug("Uploaded image to MinIO: %s", key)
        return key

    def release(self, path: str) -> bool:
        name = _stored_name(path)
        if name is None:
            logger.warning("Refusing to release image outside the store: %s", path)
            return False
        try:
            self._s3.delete_object(Bucket=self.bucket, Key=f"{STORED_PREFIX}/{name}")
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Could not release image %s: %s", path, exc)
            return False
        return True


def build_image_store(settings: Settings) -> ImageStore:
    if settings.image_storage == "minio":
        store = MinioImageStore(settings)
        store.ensure_bucket()
        return store
    return LocalImageStore(settings.images_dir)
