"""
Storage abstraction for Firebase Cloud Storage, S3-compatible buckets and
in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

import boto3
from botocore.config import Config
from firebase_admin import storage as firebase_storage


class StorageClient(Protocol):
    """Defines the operations the portal needs from object storage."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        ...

    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...


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
    ) -> None:
        self.stored_objects[path] = (data, content_type)

    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?expires={expires_in}"

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored[0]

    def reset(self) -> None:
        self.stored_objects.clear()


class FirebaseStorageClient:
    """Cloud Storage bucket of the Firebase project."""

    def __init__(self, bucket_name: str | None = None, app=None):
        if app is None:
            from portal.firebase import get_firebase_app

            app = get_firebase_app()
        self._bucket = firebase_storage.bucket(bucket_name, app=app)

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        blob = self._bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)

    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        blob = self._bucket.blob(path)
        return blob.generate_signed_url(
            expiration=timedelta(seconds=expires_in), version="v4"
        )

    def get_bytes(self, path: str) -> bytes:
        return self._bucket.blob(path).download_as_bytes()


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, Tencent COS, MinIO).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Virtual-hosted style addressing is required by COS and accepted by S3.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )

    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def get_bytes(self, path: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=path)
        return response["Body"].read()
