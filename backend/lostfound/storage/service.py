"""Object storage for chat attachments.

Two backends share the ``ObjectStorage`` interface:

    - LocalObjectStorage: files on disk under ``upload_dir``, served back by
      ``GET /files/{path}``
    - S3ObjectStorage: objects in an S3 bucket via boto3

Paths look like ``Chats/{chat_id}/{message_id}-{name}``. ``save`` returns
the public URL clients use to download the object.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from lostfound.config import AppSettings
from lostfound.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Save and delete attachment bytes."""

    @abstractmethod
    def save(self, path: str, content: bytes, content_type: str) -> str:
        """Store *content* at *path* and return its public URL.

        Raises:
            ExternalServiceError: If the object could not be written.
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove the object at *path*; missing objects are ignored."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """URL clients use to download *path*."""


class LocalObjectStorage(ObjectStorage):
    """Stores objects as files below a root directory."""

    def __init__(self, upload_dir: str, public_base_url: str) -> None:
        self._root = Path(upload_dir).resolve()
        self._public_base_url = public_base_url.rstrip("/")
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        """Map an object path to a file below the root.

        Raises:
            ValueError: If *path* escapes the root directory.
        """
        file_path = (self._root / path).resolve()
        if self._root not in file_path.parents:
            raise ValueError(f"Invalid object path: {path}")
        return file_path

    def save(self, path: str, content: bytes, content_type: str) -> str:
        try:
            file_path = self.resolve(path)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        except (OSError, ValueError) as e:
            raise ExternalServiceError(f"Could not save {path}: {e}", service="storage") from e

        logger.info(f"[Storage] Saved {file_path} ({len(content)} bytes, {content_type})")
        return self.public_url(path)

    def delete(self, path: str) -> None:
        try:
            self.resolve(path).unlink(missing_ok=True)
        except (OSError, ValueError) as e:
            raise ExternalServiceError(f"Could not delete {path}: {e}", service="storage") from e

    def public_url(self, path: str) -> str:
        return f"{self._public_base_url}/{path}"


class S3ObjectStorage(ObjectStorage):
    """Stores objects in an S3 bucket with public-read ACL."""

    def __init__(
        self,
        bucket: str,
        region: str,
        client: Optional[Any] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
    ) -> None:
        if not bucket:
            raise ValueError("S3 storage requires a bucket name")
        self._bucket = bucket
        self._region = region
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
        )

    def save(self, path: str, content: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=path,
                Body=content,
                ContentType=content_type,
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as e:
            raise ExternalServiceError(f"Could not upload {path}: {e}", service="s3") from e

        logger.info(f"[Storage] Uploaded s3://{self._bucket}/{path} ({len(content)} bytes)")
        return self.public_url(path)

    def delete(self, path: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=path)
        except (BotoCoreError, ClientError) as e:
            raise ExternalServiceError(f"Could not delete {path}: {e}", service="s3") from e

    def public_url(self, path: str) -> str:
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{path}"


def build_storage(settings: AppSettings) -> ObjectStorage:
    """Create the storage backend selected by ``storage.backend``."""
    storage_cfg = settings.storage
    if storage_cfg.backend == "s3":
        aws = settings.secrets.aws
        logger.info(f"[Storage] Using S3 bucket {storage_cfg.bucket} in {storage_cfg.region}")
        return S3ObjectStorage(
            bucket=storage_cfg.bucket,
            region=aws.region or storage_cfg.region,
            aws_access_key_id=aws.access_key_id,
            aws_secret_access_key=aws.secret_access_key,
        )
    logger.info(f"[Storage] Using local directory {storage_cfg.upload_dir}")
    return LocalObjectStorage(storage_cfg.upload_dir, storage_cfg.public_base_url)
