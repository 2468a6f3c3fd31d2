"""Object storage (Google Cloud Storage) for report attachments."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi.concurrency import run_in_threadpool

from nest.core.config import settings
from nest.core.errors import UpstreamError

logger = logging.getLogger(__name__)

_bucket: Any | None = None


def _get_bucket() -> Any:
    global _bucket
    if _bucket is None:
        if not settings.gcs_bucket:
            raise UpstreamError("Object storage is not configured. Set GCS_BUCKET.")
        try:
            from google.cloud import storage
        except ImportError as exc:
            raise UpstreamError("google-cloud-storage is not installed.") from exc
        if settings.gcs_key_file:
            client = storage.Client.from_service_account_json(
                settings.gcs_key_file, project=settings.gcs_project_id or None
            )
        else:
            client = storage.Client(project=settings.gcs_project_id or None)
        _bucket = client.bucket(settings.gcs_bucket)
    return _bucket


def _public_url(bucket_name: str, object_name: str) -> str:
    return f"https://storage.googleapis.com/{bucket_name}/{object_name}"


def _upload_sync(content: bytes, object_name: str, content_type: str) -> str:
    bucket = _get_bucket()
    blob = bucket.blob(object_name)
    blob.upload_from_string(content, content_type=content_type)
    return _public_url(bucket.name, object_name)


async def upload_file(content: bytes, filename: str, content_type: str, folder: str = "uploads") -> str:
    """Upload raw bytes and return the public URL. Failures raise UpstreamError."""
    object_name = f"{folder}/{uuid.uuid4()}-{filename}"
    try:
        return await run_in_threadpool(_upload_sync, content, object_name, content_type)
    except UpstreamError:
        raise
    except Exception as exc:  # noqa: BLE001 - storage SDK raises many types
        logger.exception("Upload to %s failed", object_name)
        raise UpstreamError(f"File upload failed: {exc}") from exc


def _delete_sync(url: str) -> bool:
    bucket = _get_bucket()
    prefix = _public_url(bucket.name, "")
    if not url.startswith(prefix):
        raise ValueError(f"Invalid file URL: {url}")
    bucket.blob(url[len(prefix):]).delete()
    return True


async def delete_file(url: str) -> bool:
    """Delete a previously uploaded object by its public URL."""
    return await run_in_threadpool(_delete_sync, url)
