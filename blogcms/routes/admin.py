"""
Admin routes for blog management.
Every endpoint requires a valid admin auth cookie.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from blogcms.config import Settings
from blogcms.deps import get_app_settings, get_image_store, get_post_repository
from blogcms.entities import AuthUser, PostQuery
from blogcms.errors import ValidationError
from blogcms.schemas import PostCreate, PostUpdate
from blogcms.services import images as images_service
from blogcms.services import posts as posts_service
from blogcms.services.auth import require_admin
from blogcms.storage.base import ImageStore, PostRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

ADMIN_POSTS_PER_PAGE = 20


# =============================================================================
# POSTS
# =============================================================================

@router.get("/posts")
async def admin_list_posts(
    page: int = 1,
    limit: int = ADMIN_POSTS_PER_PAGE,
    tag: Optional[str] = None,
    q: Optional[str] = None,
    published: Optional[bool] = None,
    repo: PostRepository = Depends(get_post_repository),
):
    """All posts including drafts. `published` narrows to one state."""
    result = posts_service.list_posts(
        repo,
        PostQuery(page=page, limit=limit, tag=tag, search=q, published=published),
    )
    return result.to_dict()


@router.post("/posts", status_code=201)
async def admin_create_post(
    body: PostCreate,
    repo: PostRepository = Depends(get_post_repository),
):
    post = posts_service.create_post(repo, body.model_dump())
    return {"success": True, "post": post.to_dict()}


@router.get("/posts/{post_id}")
async def admin_get_post(post_id: str, repo: PostRepository = Depends(get_post_repository)):
    post = posts_service.get_post(repo, post_id)
    return {"success": True, "post": post.to_dict()}


@router.put("/posts/{post_id}")
async def admin_update_post(
    post_id: str,
    body: PostUpdate,
    repo: PostRepository = Depends(get_post_repository),
):
    post = posts_service.update_post(repo, post_id, body.model_dump(exclude_unset=True))
    return {"success": True, "post": post.to_dict()}


@router.delete("/posts/{post_id}")
async def admin_delete_post(post_id: str, repo: PostRepository = Depends(get_post_repository)):
    posts_service.delete_post(repo, post_id)
    return {"success": True, "message": "Post deleted successfully"}


# =============================================================================
# IMAGES
# =============================================================================

@router.post("/upload")
async def admin_upload_image(
    image: Optional[UploadFile] = File(None),
    store: ImageStore = Depends(get_image_store),
    settings: Settings = Depends(get_app_settings),
    user: AuthUser = Depends(require_admin),
):
    """Store an uploaded image (multipart field `image`) and return its URL."""
    if image is None:
        raise ValidationError("No image file provided")

    # At most max_image_bytes + 1 bytes are read.
    data = await image.read(settings.max_image_bytes + 1)
    stored = images_service.save_image(
        store,
        data,
        image.filename or "image",
        image.content_type or "",
        max_bytes=settings.max_image_bytes,
    )
    logger.info(f"Admin '{user.username}' uploaded {stored.filename}")
    return {
        "success": True,
        "imageUrl": images_service.image_url(stored.filename),
        "image": stored.to_dict(),
    }


@router.get("/images")
async def admin_list_images(store: ImageStore = Depends(get_image_store)):
    return {"images": [image.to_dict() for image in images_service.list_images(store)]}


@router.delete("/images/{filename}")
async def admin_delete_image(filename: str, store: ImageStore = Depends(get_image_store)):
    images_service.delete_image(store, filename)
    return {"success": True}
