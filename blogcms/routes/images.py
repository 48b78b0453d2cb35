"""Public image delivery."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from blogcms.deps import get_image_store
from blogcms.services import images as images_service
from blogcms.storage.base import ImageStore

router = APIRouter(prefix="/api/images", tags=["images"])

IMMUTABLE_CACHE = "public, max-age=31536000, immutable"


@router.get("/{filename}")
async def get_image(filename: str, store: ImageStore = Depends(get_image_store)):
    """Stored image bytes. Filenames are unique, so responses never change."""
    image = images_service.get_image(store, filename)
    return Response(
        content=image.data,
        media_type=image.mime_type,
        headers={"Cache-Control": IMMUTABLE_CACHE},
    )
