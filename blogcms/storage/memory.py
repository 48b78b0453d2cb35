"""
In-memory storage.
State lives on the Storage instance created by the app lifespan and is
discarded when it closes. Nothing is shared between processes.
"""

import copy
import logging
from pathlib import Path
from typing import Optional

from blogcms.entities import Image, Post
from blogcms.errors import ConflictError, NotFoundError
from blogcms.storage.base import ImageStore, PostRepository, Storage
from blogcms.storage.filesystem import read_posts_dir

logger = logging.getLogger(__name__)


class MemoryPostRepository(PostRepository):

    def __init__(self):
        self._posts: dict[str, Post] = {}

    def create(self, post: Post) -> Post:
        if post.id in self._posts:
            raise ConflictError(f'Post with ID "{post.id}" already exists')
        self._posts[post.id] = copy.deepcopy(post)
        return copy.deepcopy(post)

    def get(self, post_id: str) -> Optional[Post]:
        post = self._posts.get(post_id)
        return copy.deepcopy(post) if post else None

    def update(self, post: Post) -> Post:
        if post.id not in self._posts:
            raise NotFoundError(f'Post with ID "{post.id}" not found')
        self._posts[post.id] = copy.deepcopy(post)
        return copy.deepcopy(post)

    def delete(self, post_id: str) -> None:
        if self._posts.pop(post_id, None) is None:
            raise NotFoundError(f'Post with ID "{post_id}" not found')

    def list(self, published: Optional[bool] = None) -> list[Post]:
        return [
            copy.deepcopy(post) for post in self._posts.values()
            if published is None or post.published == published
        ]

    def clear(self) -> None:
        self._posts.clear()


class MemoryImageStore(ImageStore):

    def __init__(self):
        self._images: dict[str, Image] = {}

    def save(self, image: Image) -> Image:
        if image.filename in self._images:
            raise ConflictError(f'Image "{image.filename}" already exists')
        self._images[image.filename] = image
        return image

    def get(self, filename: str) -> Optional[Image]:
        return self._images.get(filename)

    def delete(self, filename: str) -> bool:
        return self._images.pop(filename, None) is not None

    def list(self) -> list[Image]:
        images = [
            Image(
                filename=image.filename,
                original_name=image.original_name,
                mime_type=image.mime_type,
                size=image.size,
                uploaded_at=image.uploaded_at,
            )
            for image in self._images.values()
        ]
        return sorted(images, key=lambda image: image.uploaded_at, reverse=True)

    def clear(self) -> None:
        self._images.clear()


class MemoryStorage(Storage):
    """Process-local storage, optionally seeded from MDX files at open."""

    name = "memory"

    def __init__(self, seed_dir: Optional[Path] = None):
        super().__init__(MemoryPostRepository(), MemoryImageStore())
        self.seed_dir = seed_dir

    def open(self) -> None:
        if self.seed_dir is None:
            return

        seeded = 0
        for post in read_posts_dir(self.seed_dir):
            try:
                self.posts.create(post)
                seeded += 1
            except ConflictError:
                logger.warning(f"Skipping duplicate post id while seeding: {post.id}")
        logger.info(f"Seeded {seeded} posts from {self.seed_dir}")

    def close(self) -> None:
        self.posts.clear()
        self.images.clear()
