"""
Storage interfaces.
Every backend implements PostRepository and ImageStore; a Storage bundles both
and owns their lifecycle.
"""

from abc import ABC, abstractmethod
from typing import Optional

from blogcms.entities import Image, Post, PostQuery, PostsPage
from blogcms.services.posts import apply_query


class PostRepository(ABC):
    """CRUD over posts keyed by post id."""

    @abstractmethod
    def create(self, post: Post) -> Post:
        """Store a new post. Raises ConflictError when the id is taken."""

    @abstractmethod
    def get(self, post_id: str) -> Optional[Post]:
        ...

    @abstractmethod
    def update(self, post: Post) -> Post:
        """Replace a stored post. Raises NotFoundError when it does not exist."""

    @abstractmethod
    def delete(self, post_id: str) -> None:
        """Remove a post. Raises NotFoundError when it does not exist."""

    @abstractmethod
    def list(self, published: Optional[bool] = None) -> list[Post]:
        ...

    def query(self, query: PostQuery) -> PostsPage:
        return apply_query(self.list(published=query.published), query)


class ImageStore(ABC):

    @abstractmethod
    def save(self, image: Image) -> Image:
        ...

    @abstractmethod
    def get(self, filename: str) -> Optional[Image]:
        ...

    @abstractmethod
    def delete(self, filename: str) -> bool:
        """Delete an image. Returns False when nothing was stored under the name."""

    @abstractmethod
    def list(self) -> list[Image]:
        """Stored images without their data, newest first."""


class Storage:
    """A post repository and an image store with a shared lifecycle."""

    name = "base"

    def __init__(self, posts: PostRepository, images: ImageStore):
        self.posts = posts
        self.images = images

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def ping(self) -> bool:
        return True
