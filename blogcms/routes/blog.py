"""
Public blog API: published posts, tags and category URLs.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from blogcms.deps import get_post_repository
from blogcms.entities import AuthUser, Post, PostQuery
from blogcms.schemas import PostCreate, PostUpdate
from blogcms.services import posts as posts_service
from blogcms.services.auth import require_admin
from blogcms.storage.base import PostRepository

router = APIRouter(prefix="/api", tags=["blog"])

POSTS_PER_PAGE = 12
PUBLIC_CACHE = "public, max-age=60"


def post_detail(post: Post) -> dict:
    """Full post payload with rendered HTML for readers."""
    data = post.to_dict(include_content=True)
    data["html"] = posts_service.render_markdown(post.content)
    data["preview"] = posts_service.generate_preview(post.content)
    return data


@router.get("/posts")
async def list_published_posts(
    page: int = 1,
    limit: int = POSTS_PER_PAGE,
    tag: Optional[str] = None,
    q: Optional[str] = None,
    repo: PostRepository = Depends(get_post_repository),
):
    """Published posts, newest first, with pagination, tag filter and search."""
    result = posts_service.list_posts(
        repo,
        PostQuery(page=page, limit=limit, tag=tag, search=q, published=True),
    )
    payload = result.to_dict()
    for item, post in zip(payload["posts"], result.posts):
        item["preview"] = posts_service.generate_preview(post.content)
    return JSONResponse(content=payload, headers={"Cache-Control": PUBLIC_CACHE})


@router.post("/posts", status_code=201)
async def create_post(
    body: PostCreate,
    repo: PostRepository = Depends(get_post_repository),
    user: AuthUser = Depends(require_admin),
):
    post = posts_service.create_post(repo, body.model_dump())
    return {"success": True, "post": post.to_dict()}


@router.get("/posts/{slug}")
async def get_published_post(slug: str, repo: PostRepository = Depends(get_post_repository)):
    """Single published post by id or legacy url."""
    post = posts_service.resolve_post(repo, slug)
    return JSONResponse(content=post_detail(post), headers={"Cache-Control": PUBLIC_CACHE})


@router.put("/posts/{slug}")
async def update_post(
    slug: str,
    body: PostUpdate,
    repo: PostRepository = Depends(get_post_repository),
    user: AuthUser = Depends(require_admin),
):
    post = posts_service.resolve_post(repo, slug, published_only=False)
    updated = posts_service.update_post(repo, post.id, body.model_dump(exclude_unset=True))
    return {"success": True, "post": updated.to_dict()}


@router.delete("/posts/{slug}")
async def delete_post(
    slug: str,
    repo: PostRepository = Depends(get_post_repository),
    user: AuthUser = Depends(require_admin),
):
    post = posts_service.resolve_post(repo, slug, published_only=False)
    posts_service.delete_post(repo, post.id)
    return {"success": True, "message": "Post deleted successfully"}


@router.get("/tags")
async def list_tags(repo: PostRepository = Depends(get_post_repository)):
    return JSONResponse(
        content={"tags": posts_service.list_tags(repo)},
        headers={"Cache-Control": PUBLIC_CACHE},
    )


@router.get("/tags/{tag}/posts/{post_id}")
async def get_post_in_category(
    tag: str,
    post_id: str,
    repo: PostRepository = Depends(get_post_repository),
):
    """Post addressed by category (slug of its first tag) and id."""
    post = posts_service.get_post_in_category(repo, tag, post_id)
    return JSONResponse(content=post_detail(post), headers={"Cache-Control": PUBLIC_CACHE})
