"""
Storage abstraction for S3-compatible object storage and in-memory testing.

Logical buckets (e.g. "photos") map to key prefixes inside one physical
bucket, so every object is addressed as `{bucket}/{path}`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.types import PHOTOS_BUCKET

ALLOWED_BUCKETS = {PHOTOS_BUCKET}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class StorageUploadError(Exception):
    """Raised when an object cannot be written (quota, permissions, network)."""


class UnknownBucketError(StorageUploadError):
    pass


class StoragePermissionError(StorageUploadError):
    pass


class UploadTooLargeError(StorageUploadError):
    pass


def check_upload(bucket: str, path: str, user_id: str, size: int) -> None:
    """Rejects uploads outside the caller's `{user_id}/` folder, empty or over quota."""
    if bucket not in ALLOWED_BUCKETS:
        raise UnknownBucketError(f"Unknown bucket: {bucket}")
    if not path.startswith(f"{user_id}/") or ".." in path.split("/"):
        raise StoragePermissionError("Objects must live under the caller's folder")
    if size == 0:
        raise StorageUploadError("Empty upload")
    if size > MAX_UPLOAD_BYTES:
        raise UploadTooLargeError("Upload exceeds the size quota")


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...

    def get_bytes(self, bucket: str, path: str) -> bytes:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)
    max_object_bytes: Optional[int] = None

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        if self.max_object_bytes is not None and len(data) > self.max_object_bytes:
            raise StorageUploadError(
                f"Object exceeds the {self.max_object_bytes} byte quota"
            )
        self.stored_objects[f"{bucket}/{path}"] = data
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"

    def get_bytes(self, bucket: str, path: str) -> bytes:
        stored = self.stored_objects.get(f"{bucket}/{path}")
        if stored is None:
            raise FileNotFoundError(path)
        return stored


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client with publicly readable objects.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        key = f"{bucket}/{path}"
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageUploadError(str(e)) from e
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        key = f"{bucket}/{path}"
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        endpoint = (self.endpoint or f"https://s3.{self.region}.amazonaws.com").rstrip("/")
        return f"{endpoint}/{self.bucket}/{key}"

    def get_bytes(self, bucket: str, path: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=f"{bucket}/{path}")
        return response["Body"].read()
