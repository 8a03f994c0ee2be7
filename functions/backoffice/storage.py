"""
Blob storage abstraction for project images and resumes: Firebase Storage,
S3-compatible storage (Tencent COS) and in-memory testing.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import storage as firebase_storage

from backoffice.errors import StoreError

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Defines the operations the controllers need from object storage."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        """Store data at path and return a durable download URL."""
        ...

    def get_bytes(self, path: str) -> bytes:
        ...


@dataclass
class UploadedFile:
    """A file received from an operator form."""

    name: str
    data: bytes
    content_type: str = "application/octet-stream"


def safe_file_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in (name or "file"))


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        self.stored_objects[path] = bytes(data)
        return f"{self.base_url}/{quote(path, safe='')}?alt=media"

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored


@dataclass
class FirebaseStorageClient:
    """
    Firebase Storage client. URLs carry a download token, the same shape the
    web SDK's getDownloadURL returns, so they stay valid without signing.
    """

    bucket_name: Optional[str] = None

    def __post_init__(self):
        self._bucket = firebase_storage.bucket(self.bucket_name)

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        token = uuid.uuid4().hex
        blob = self._bucket.blob(path)
        blob.metadata = {"firebaseStorageDownloadTokens": token}
        try:
            blob.upload_from_string(data, content_type=content_type)
        except (firebase_exceptions.FirebaseError, OSError, ValueError) as e:
            logger.error("Upload to %s failed: %s", path, e)
            raise StoreError(path, str(e)) from e
        return (
            f"https://firebasestorage.googleapis.com/v0/b/{self._bucket.name}/o/"
            f"{quote(path, safe='')}?alt=media&token={token}"
        )

    def get_bytes(self, path: str) -> bytes:
        return self._bucket.blob(path).download_as_bytes()


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Upload to %s failed: %s", path, e)
            raise StoreError(path, str(e)) from e
        base = self.public_base_url or f"{self.endpoint.rstrip('/')}/{self.bucket}"
        return f"{base.rstrip('/')}/{quote(path)}"

    def get_bytes(self, path: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=path)
        return response["Body"].read()
