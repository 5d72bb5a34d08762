"""
Quote attachment storage.

Stores to Cloudflare R2 if configured, otherwise the local uploads/ directory.
Every file is validated (type allow-list, size ceiling) before anything is
written, so a rejected file never reaches storage.
"""

import logging
import uuid
from io import BytesIO
from pathlib import Path

from .config import settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
}


class AttachmentRejected(ValueError):
    """File failed the type or size check."""


def _get_extension(filename: str) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def validate_attachment(file_name: str, content_type: str, size: int) -> None:
    """Raises AttachmentRejected for disallowed types, empty or oversized files."""
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise AttachmentRejected(
            f"File type '{content_type}' not allowed. "
            f"Allowed: PDF, images (PNG, JPG, GIF, BMP, WEBP), Word, Excel, plain text."
        )
    if size <= 0:
        raise AttachmentRejected("Empty file.")
    max_bytes = settings.ATTACHMENT_MAX_BYTES
    if size > max_bytes:
        raise AttachmentRejected(
            f"File too large ({size / 1024 / 1024:.1f}MB). "
            f"Maximum is {max_bytes / 1024 / 1024:.0f}MB."
        )


def _r2_configured() -> bool:
    return bool(
        settings.CLOUDFLARE_R2_ACCOUNT_ID
        and settings.CLOUDFLARE_R2_ACCESS_KEY_ID
        and settings.CLOUDFLARE_R2_SECRET_ACCESS_KEY
    )


def _r2_client():
    import boto3

    return boto3.client(
        "s3",
        endpoint_url=f"https://{settings.CLOUDFLARE_R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.CLOUDFLARE_R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.CLOUDFLARE_R2_SECRET_ACCESS_KEY,
    )


def _local_path(storage_key: str) -> Path:
    return Path(settings.UPLOAD_DIR) / storage_key


def save_attachment(quote_uuid: str, file_name: str, content_type: str, data: bytes) -> str:
    """Validate and store one file. Returns the storage key."""
    validate_attachment(file_name, content_type, len(data))

    ext = _get_extension(file_name)
    unique_name = uuid.uuid4().hex[:12] + (f".{ext}" if ext else "")
    storage_key = f"attachments/{quote_uuid}/{unique_name}"

    if _r2_configured():
        _r2_client().upload_fileobj(
            BytesIO(data),
            settings.CLOUDFLARE_R2_BUCKET,
            storage_key,
            ExtraArgs={"ContentType": content_type},
        )
    else:
        path = _local_path(storage_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    logger.info("Stored attachment %s for quote %s (%d bytes)", file_name, quote_uuid, len(data))
    return storage_key


def read_attachment(storage_key: str) -> bytes:
    """Raises FileNotFoundError when the object is gone."""
    if _r2_configured():
        buffer = BytesIO()
        _r2_client().download_fileobj(settings.CLOUDFLARE_R2_BUCKET, storage_key, buffer)
        return buffer.getvalue()
    path = _local_path(storage_key)
    with open(path, "rb") as f:
        return f.read()


def delete_attachment(storage_key: str) -> None:
    if _r2_configured():
        _r2_client().delete_object(Bucket=settings.CLOUDFLARE_R2_BUCKET, Key=storage_key)
        return
    path = _local_path(storage_key)
    if path.exists():
        path.unlink()
