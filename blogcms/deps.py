"""FastAPI dependencies resolving app-scoped state."""

from fastapi import Request

from blogcms.config import Settings
from blogcms.storage.base import ImageStore, PostRepository, Storage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_post_repository(request: Request) -> PostRepository:
    return get_storage(request).posts


def get_image_store(request: Request) -> ImageStore:
    return get_storage(request).images
