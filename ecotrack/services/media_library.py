"""Helpers for uploading activity and organizer proof images to Cloudinary."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from flask import current_app
from slugify import slugify
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_MEDIA_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
ALLOWED_MEDIA_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}
MEDIA_FOLDERS = {"activity": "activity-images", "proof": "organizer-proofs"}


class MediaUploadError(Exception):
    pass


def configure_cloudinary() -> tuple[bool, str | None]:
    """Configure Cloudinary from the application config."""

    cloud_name = current_app.config.get("CLOUDINARY_CLOUD_NAME")
    api_key = current_app.config.get("CLOUDINARY_API_KEY")
    api_secret = current_app.config.get("CLOUDINARY_API_SECRET")

    if not cloud_name or not api_key or not api_secret:
        return False, "Image storage is not configured."

    cloudinary.config(
        cloud_name=cloud_name,
        api_key=api_key,
        api_secret=api_secret,
        secure=True,
    )
    return True, None


def validate_media_file(
    file_storage: FileStorage | None,
    *,
    max_bytes: int,
    allowed_extensions: Iterable[str] = ALLOWED_MEDIA_EXTENSIONS,
    allowed_mime_types: Iterable[str] = ALLOWED_MEDIA_MIME_TYPES,
) -> tuple[bool, str | None]:
    if not file_storage or not file_storage.filename:
        return False, "Select an image to upload."

    filename = secure_filename(file_storage.filename)
    if not filename:
        return False, "Invalid file name."

    extension = Path(filename).suffix.lower()
    if extension not in set(allowed_extensions):
        return False, "Unsupported file format. Use JPG, PNG or WEBP."

    mimetype = (file_storage.mimetype or "").lower()
    if mimetype not in set(allowed_mime_types):
        return False, "Unsupported MIME type. Use JPG, PNG or WEBP."

    file_storage.stream.seek(0, 2)
    size = file_storage.stream.tell()
    file_storage.stream.seek(0)

    if size > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        return False, f"File too large. Limit: {max_mb:.1f}MB."

    return True, None


def build_public_id(kind: str, owner_id: int, filename: str) -> str:
    """Per-owner public ID, e.g. ``ecotrack/activity-images/42/park-cleanup-1700000000``."""

    now = datetime.now(timezone.utc)
    base_slug = slugify(Path(filename).stem) or "image"
    folder = MEDIA_FOLDERS.get(kind, kind)
    return f"ecotrack/{folder}/{owner_id}/{base_slug}-{int(now.timestamp())}"


def upload_image(file_storage: FileStorage, *, kind: str, owner_id: int) -> str:
    """Validate, upload and return the public HTTPS URL of the image."""

    ok, error = validate_media_file(
        file_storage, max_bytes=current_app.config.get("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)
    )
    if not ok:
        raise MediaUploadError(error)

    configured, error = configure_cloudinary()
    if not configured:
        raise MediaUploadError(error)

    public_id = build_public_id(kind, owner_id, file_storage.filename or "image")
    try:
        payload = cloudinary.uploader.upload(
            file_storage,
            public_id=public_id,
            resource_type="image",
            overwrite=False,
        )
    except cloudinary.exceptions.Error as exc:
        logger.warning("[STORAGE] upload failed for %s: %s", public_id, exc)
        raise MediaUploadError("Image upload failed. Please try again.") from exc

    url = payload.get("secure_url") or payload.get("url")
    if not url:
        raise MediaUploadError("Image upload failed. Please try again.")
    logger.info("[STORAGE] uploaded %s", public_id)
    return url


__all__ = [
    "MediaUploadError",
    "build_public_id",
    "configure_cloudinary",
    "upload_image",
    "validate_media_file",
]
