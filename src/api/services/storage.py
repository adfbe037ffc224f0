"""Artifact publishing backends (S3-compatible bucket or local directory)."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ArtifactNotFoundError, StorageError
from ..metrics import ARTIFACT_UPLOADS
from ..settings import APISettings

LOGGER = logging.getLogger("clipsense.storage")


class ArtifactStore(Protocol):
    async def publish(self, local_path: Path, key: str, content_type: str = "application/octet-stream") -> str: ...

    async def fetch(self, key: str, dest: Path) -> Path: ...


def _join_url(base: str, key: str) -> str:
    return f"{base.rstrip('/')}/{quote(key.lstrip('/'))}"


class S3ArtifactStore:
    """Bucket store; also covers MinIO and Supabase via ``endpoint_url``."""

    backend = "s3"

    def __init__(
        self,
        bucket: str | None,
        *,
        client=None,
        public_base_url: str | None = None,
        signed_url_expires: int = 604800,
        endpoint_url: str | None = None,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> None:
        if not bucket:
            raise StorageError("storage not configured: STORAGE_BUCKET is empty")
        self.bucket = bucket
        self.public_base_url = public_base_url
        self.signed_url_expires = signed_url_expires
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    async def publish(self, local_path: Path, key: str, content_type: str = "application/octet-stream") -> str:
        try:
            await asyncio.to_thread(
                self._client.upload_file,
                str(local_path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
            url = await asyncio.to_thread(self.url_for, key)
        except (BotoCoreError, ClientError, S3UploadFailedError) as exc:
            ARTIFACT_UPLOADS.labels(backend=self.backend, status="error").inc()
            LOGGER.error("Upload of %s to bucket %s failed: %s", key, self.bucket, exc)
            raise StorageError(f"upload of {key} failed: {exc}") from exc
        ARTIFACT_UPLOADS.labels(backend=self.backend, status="success").inc()
        LOGGER.info("Published %s to bucket %s", key, self.bucket)
        return url

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return _join_url(self.public_base_url, key)
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.signed_url_expires,
        )

    async def fetch(self, key: str, dest: Path) -> Path:
        try:
            await asyncio.to_thread(self._client.download_file, self.bucket, key, str(dest))
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                raise ArtifactNotFoundError(f"object not found: {key}") from exc
            raise StorageError(f"download of {key} failed: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"download of {key} failed: {exc}") from exc
        return dest


class LocalArtifactStore:
    """Directory-backed store for development and tests."""

    backend = "local"

    def __init__(self, root: Path | str, *, public_base_url: str | None = None) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url

    def _resolve(self, key: str) -> Path:
        root = self.root.resolve()
        target = (root / key.lstrip("/")).resolve()
        if root not in target.parents:
            raise StorageError(f"invalid object key: {key}")
        return target

    async def publish(self, local_path: Path, key: str, content_type: str = "application/octet-stream") -> str:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, local_path, target)
        except OSError as exc:
            ARTIFACT_UPLOADS.labels(backend=self.backend, status="error").inc()
            raise StorageError(f"could not store {key}: {exc}") from exc
        ARTIFACT_UPLOADS.labels(backend=self.backend, status="success").inc()
        if self.public_base_url:
            return _join_url(self.public_base_url, key)
        return target.as_uri()

    async def fetch(self, key: str, dest: Path) -> Path:
        source = self._resolve(key)
        if not source.is_file():
            raise ArtifactNotFoundError(f"object not found: {key}")
        await asyncio.to_thread(shutil.copyfile, source, dest)
        return dest


def build_store(settings: APISettings, *, client=None) -> ArtifactStore:
    backend = (settings.storage_backend or "").lower()
    if backend == "local":
        return LocalArtifactStore(settings.local_storage_dir, public_base_url=settings.public_base_url)
    if backend == "s3":
        return S3ArtifactStore(
            settings.storage_bucket,
            client=client,
            public_base_url=settings.public_base_url,
            signed_url_expires=settings.signed_url_expires,
            endpoint_url=settings.s3_endpoint_url,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
        )
    raise StorageError(f"storage not configured: unknown backend {settings.storage_backend!r}")


def describe_store(settings: APISettings) -> str:
    backend = (settings.storage_backend or "").lower()
    if backend == "local":
        return "local"
    if backend == "s3" and settings.storage_bucket:
        return f"s3:{settings.storage_bucket}"
    return "unconfigured"


__all__ = [
    "ArtifactStore",
    "LocalArtifactStore",
    "S3ArtifactStore",
    "build_store",
    "describe_store",
]
