"""Object storage for generated artifacts and inquiry images.

Two backends behind one small interface (put / get / delete / url_for):
  - LocalObjectStorage: files under STORAGE_LOCAL_ROOT (development, tests)
  - S3ObjectStorage: any S3-compatible bucket via boto3 (production)

Errors from either backend surface as StorageError.
"""

from functools import lru_cache
from pathlib import Path
from typing import Protocol

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..config import settings
from ..exceptions import StorageError


class ObjectStorage(Protocol):
    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...

    def url_for(self, key: str) -> str: ...


def _check_key(key: str) -> str:
    key = (key or "").strip().lstrip("/")
    if not key or ".." in Path(key).parts:
        raise StorageError(f"Invalid storage key: {key!r}")
    return key


class LocalObjectStorage:
    def __init__(self, root: str | Path, public_base_url: str = ""):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        return self.root / _check_key(key)

    def url_for(self, key: str) -> str:
        key = _check_key(key)
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return self._path(key).resolve().as_uri()

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}") from e
        return self.url_for(key)

    def get(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except OSError as e:
            raise StorageError(f"Could not read {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not delete {key}: {e}") from e


class S3ObjectStorage:
    def __init__(
        self,
        bucket: str,
        *,
        region: str = "",
        endpoint_url: str = "",
        access_key: str = "",
        secret_key: str = "",
        public_base_url: str = "",
        client=None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self._client = client or boto3.session.Session().client(
            "s3",
            region_name=region or None,
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            config=Config(signature_version="s3v4"),
        )

    def url_for(self, key: str) -> str:
        key = _check_key(key)
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        key = _check_key(key)
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not upload {key}: {e}") from e
        return self.url_for(key)

    def get(self, key: str) -> bytes:
        key = _check_key(key)
        try:
            obj = self._client.get_object(Bucket=self.bucket, Key=key)
            return obj["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not download {key}: {e}") from e

    def delete(self, key: str) -> None:
        key = _check_key(key)
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not delete {key}: {e}") from e


@lru_cache(maxsize=1)
def get_storage() -> ObjectStorage:
    """Storage backend chosen by STORAGE_BACKEND. Also used as a FastAPI dependency."""
    if settings.storage_backend == "s3":
        if not settings.s3_bucket:
            raise StorageError("STORAGE_BACKEND=s3 but S3_BUCKET is not set")
        logger.info("Object storage: S3 bucket {}", settings.s3_bucket)
        return S3ObjectStorage(
            settings.s3_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            public_base_url=settings.storage_public_base_url,
        )
    logger.info("Object storage: local directory {}", settings.storage_local_root)
    return LocalObjectStorage(settings.storage_local_root, settings.storage_public_base_url)
