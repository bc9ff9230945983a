"""Signature/file storage service with provider interface (GCS/S3)."""

import base64
import binascii
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from app.core.config import get_settings, StorageProvider

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


class UploadFailed(Exception):
    """The storage provider could not store the object."""


@dataclass(frozen=True)
class StoredObject:
    url: str
    public_id: str


@dataclass(frozen=True)
class DecodedBlob:
    data: bytes
    mime_type: str


def decode_data_url(value: str, default_mime: str = "image/png") -> DecodedBlob:
    """Decode a ``data:<mime>;base64,<payload>`` URL or a bare base64 string."""
    match = _DATA_URL_RE.match(value.strip())
    if match:
        mime_type, payload = match.group("mime"), match.group("data")
    else:
        mime_type, payload = default_mime, value.strip()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Signature data is not valid base64") from e
    if not data:
        raise ValueError("Signature data is empty")
    return DecodedBlob(data=data, mime_type=mime_type)


class StorageProviderInterface(ABC):
    """Abstract interface for storage providers."""

    @abstractmethod
    async def upload_bytes(self, object_path: str, data: bytes, mime_type: str) -> str:
        """Store ``data`` at ``object_path`` and return a retrievable URL."""
        pass

    @abstractmethod
    async def delete_object(self, object_path: str) -> bool:
        """Delete an object from storage."""
        pass


class GCSStorageProvider(StorageProviderInterface):
    """Google Cloud Storage provider."""

    def __init__(self, bucket_name: str, project_id: Optional[str] = None):
        self.bucket_name = bucket_name
        self.project_id = project_id
        self._client = None

    @property
    def client(self):
        if self._client is None:
            from google.cloud import storage
            self._client = storage.Client(project=self.project_id)
        return self._client

    @property
    def bucket(self):
        return self.client.bucket(self.bucket_name)

    async def upload_bytes(self, object_path: str, data: bytes, mime_type: str) -> str:
        blob = self.bucket.blob(object_path)
        blob.upload_from_string(data, content_type=mime_type)
        return blob.public_url

    async def delete_object(self, object_path: str) -> bool:
        blob = self.bucket.blob(object_path)
        if blob.exists():
            blob.delete()
            return True
        return False


class S3StorageProvider(StorageProviderInterface):
    """AWS S3 storage provider."""

    def __init__(
        self,
        bucket_name: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self._client = None
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key

    @property
    def client(self):
        if self._client is None:
            import boto3
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
            )
        return self._client

    async def upload_bytes(self, object_path: str, data: bytes, mime_type: str) -> str:
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=object_path,
            Body=data,
            ContentType=mime_type,
        )
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{object_path}"

    async def delete_object(self, object_path: str) -> bool:
        from botocore.exceptions import BotoCoreError, ClientError
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=object_path)
            return True
        except (BotoCoreError, ClientError):
            return False


class StorageService:
    """High-level storage service wrapping provider interface."""

    ALLOWED_MIME_TYPES = {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/svg+xml",
        "application/pdf",
    }

    EXTENSIONS = {
        "image/jpeg": "jpg",
        "image/png": "png",
        "image/webp": "webp",
        "image/svg+xml": "svg",
        "application/pdf": "pdf",
    }

    def __init__(self, provider: StorageProviderInterface, max_size_mb: int = 5):
        self.provider = provider
        self.max_size_mb = max_size_mb

    def generate_object_path(self, folder: str, kind: str, mime_type: str) -> str:
        """Generate a unique object path inside ``folder``."""
        ext = self.EXTENSIONS.get(mime_type, "bin")
        return f"{folder.strip('/')}/{kind}-{uuid.uuid4()}.{ext}"

    def validate(self, data: bytes, mime_type: str) -> None:
        if mime_type not in self.ALLOWED_MIME_TYPES:
            raise ValueError(f"Unsupported mime type: {mime_type}")
        if len(data) > self.max_size_mb * 1024 * 1024:
            raise ValueError(f"File size exceeds maximum of {self.max_size_mb}MB")

    async def store(self, data: bytes, folder: str, kind: str, mime_type: str = "image/png") -> StoredObject:
        """Store a binary blob and return its URL and identifier.

        Raises:
            ValueError: unsupported type or oversized blob (nothing uploaded)
            UploadFailed: the provider rejected or failed the upload
        """
        self.validate(data, mime_type)
        object_path = self.generate_object_path(folder, kind, mime_type)
        try:
            url = await self.provider.upload_bytes(object_path, data, mime_type)
        except Exception as e:
            logger.error(f"[STORAGE] Upload to {object_path} failed: {e}")
            raise UploadFailed(str(e)) from e
        return StoredObject(url=url, public_id=object_path)

    async def discard(self, public_id: str) -> bool:
        """Delete an object whose owning write was rolled back. Failures are logged."""
        try:
            deleted = await self.provider.delete_object(public_id)
        except Exception as e:
            logger.error(f"[STORAGE] Could not delete orphaned {public_id}: {e}")
            return False
        if not deleted:
            logger.warning(f"[STORAGE] Orphaned {public_id} was not found for deletion")
        return deleted


def get_storage_service() -> StorageService:
    """Factory function to get storage service based on config."""
    settings = get_settings()
    if settings.storage_provider == StorageProvider.GCS:
        provider = GCSStorageProvider(
            bucket_name=settings.bucket_name,
            project_id=settings.gcs_project_id,
        )
    else:
        provider = S3StorageProvider(
            bucket_name=settings.bucket_name,
            region=settings.aws_region or "us-east-1",
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )

    return StorageService(provider, max_size_mb=settings.max_upload_size_mb)
