"""
Image uploads: validation, naming and storage through an ImageStore.
"""

import logging
import random
import string
import time
from pathlib import PurePath
from typing import TYPE_CHECKING, Optional

from blogcms.entities import Image, utcnow
from blogcms.errors import NotFoundError, ValidationError
from blogcms.services.slugs import slugify

if TYPE_CHECKING:
    from blogcms.storage.base import ImageStore

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024

ALLOWED_IMAGE_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
}

EXTENSION_FOR_MIME_TYPE = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

MIME_TYPE_FOR_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

IMAGE_URL_PREFIX = "/api/images/"


def image_url(filename: str) -> str:
    return f"{IMAGE_URL_PREFIX}{filename}"


def validate_image(size: int, mime_type: str, max_bytes: int = MAX_IMAGE_BYTES) -> list[str]:
    errors = []
    if size <= 0:
        errors.append("Image file is empty")
    elif size > max_bytes:
        errors.append(f"Image size must be less than {max_bytes // (1024 * 1024)}MB")
    if (mime_type or "").lower() not in ALLOWED_IMAGE_MIME_TYPES:
        errors.append("Only JPEG, PNG, WebP, and GIF images are allowed")
    return errors


def generate_image_filename(original_name: str, mime_type: Optional[str] = None) -> str:
    """`{kebab-base}-{epoch_ms}-{random}{ext}`, unique enough for a single-author blog.

    The extension always follows the validated MIME type; the client's own
    suffix only contributes to the base name.
    """
    path = PurePath(original_name or "")
    extension = EXTENSION_FOR_MIME_TYPE.get((mime_type or "").lower(), "")
    base = slugify(path.stem.replace("_", " ").replace(".", " ")) or "image"
    timestamp = int(time.time() * 1000)
    random_part = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{base}-{timestamp}-{random_part}{extension}"


def save_image(
    store: "ImageStore",
    data: bytes,
    original_name: str,
    mime_type: str,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> Image:
    """Validate and store an uploaded image."""
    errors = validate_image(len(data), mime_type, max_bytes)
    if errors:
        raise ValidationError(", ".join(errors), errors)

    image = Image(
        filename=generate_image_filename(original_name, mime_type),
        original_name=original_name or "image",
        mime_type=mime_type.lower(),
        size=len(data),
        data=data,
        uploaded_at=utcnow(),
    )
    store.save(image)
    logger.info(f"Stored image {image.filename} ({image.size} bytes)")
    return image


def get_image(store: "ImageStore", filename: str) -> Image:
    image = store.get(filename) if _is_bare_filename(filename) else None
    if image is None:
        raise NotFoundError("Image not found")
    return image


def delete_image(store: "ImageStore", filename: str) -> None:
    if not _is_bare_filename(filename) or not store.delete(filename):
        raise NotFoundError(f'Image "{filename}" not found')
    logger.info(f"Deleted image {filename}")


def list_images(store: "ImageStore") -> list[Image]:
    return store.list()


def _is_bare_filename(filename: str) -> bool:
    return bool(filename) and PurePath(filename).name == filename and ".." not in filename
