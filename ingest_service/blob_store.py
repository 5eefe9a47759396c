"""Durable storage of named byte blobs in S3."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from common.config import StoreSettings

logger = logging.getLogger(__name__)

TS_CONTENT_TYPE = "video/MP2T"
JPEG_CONTENT_TYPE = "image/jpeg"
PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"

_CONTENT_TYPES = {
    ".ts": TS_CONTENT_TYPE,
    ".jpg": JPEG_CONTENT_TYPE,
    ".jpeg": JPEG_CONTENT_TYPE,
}

_store: S3BlobStore | None = None


class BlobStoreError(RuntimeError):
    pass


class BlobStore(Protocol):
    async def put(self, key: str, body: bytes, content_type: str) -> None: ...


def content_type_for(path: str | Path) -> str:
    """Pick a content type from the file extension; playlists are the fallback."""
    return _CONTENT_TYPES.get(Path(path).suffix.lower(), PLAYLIST_CONTENT_TYPE)


class S3BlobStore:
    def __init__(self, client, bucket: str, prefix: str = "") -> None:
        self._client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    def full_key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    async def put(self, key: str, body: bytes, content_type: str) -> None:
        full_key = self.full_key(key)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=full_key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"PutObject failed for {full_key}: {exc}") from exc


async def upload_file(store: BlobStore, path: str | Path, key: str) -> None:
    """Read a local file and store it under ``key``.

    Raises BlobStoreError if the file cannot be read or the put fails.
    """
    logger.info("Uploading %s as %s", path, key)
    try:
        body = await asyncio.to_thread(Path(path).read_bytes)
    except OSError as exc:
        raise BlobStoreError(f"Cannot read {path}: {exc}") from exc
    await store.put(key, body, content_type_for(path))
    logger.info("Uploaded %s", key)


def get_store(settings: StoreSettings | None = None) -> S3BlobStore:
    global _store
    if _store is None:
        settings = settings or StoreSettings()
        if not settings.bucket:
            raise RuntimeError("STORE_BUCKET is not configured")
        client = boto3.client(
            "s3",
            region_name=settings.region,
            config=BotoConfig(
                connect_timeout=settings.connect_timeout_s,
                read_timeout=settings.read_timeout_s,
                retries={"max_attempts": settings.max_attempts},
            ),
        )
        _store = S3BlobStore(client, settings.bucket, settings.prefix)
        logger.info("S3 store ready: bucket=%s prefix=%s region=%s",
                    settings.bucket, settings.prefix, settings.region)
    return _store
