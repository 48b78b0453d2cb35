"""
Filesystem storage: one MDX file with YAML frontmatter per post, images as plain files.
"""

import logging
import shutil
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

import frontmatter
import yaml

from blogcms.entities import Image, Post, utcnow
from blogcms.errors import ConflictError, NotFoundError
from blogcms.services.images import MIME_TYPE_FOR_EXTENSION
from blogcms.services.posts import clean_tags, normalize_date
from blogcms.services.slugs import tag_to_slug
from blogcms.storage.base import ImageStore, PostRepository, Storage

logger = logging.getLogger(__name__)

POST_EXTENSIONS = (".mdx", ".md")


def is_safe_name(name: str) -> bool:
    """A bare file name: no separators, no parent references, not hidden."""
    return bool(name) and "/" not in name and "\\" not in name and not name.startswith(".")


def _as_utc(value: Any, fallback: datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return fallback
    else:
        return fallback
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def post_from_frontmatter(fm_post: frontmatter.Post, post_id: str, modified: datetime) -> Optional[Post]:
    """Build a Post from parsed frontmatter. Returns None when required keys are missing."""
    metadata = fm_post.metadata
    tags = metadata.get("tags")
    if isinstance(tags, str):
        tags = [tags]
    tags = clean_tags(tags or [])

    if not metadata.get("title") or not metadata.get("date") or not tags:
        logger.warning(f"Missing required frontmatter in {post_id}")
        return None

    url = metadata.get("url")
    return Post(
        id=post_id,
        title=str(metadata["title"]),
        description=str(metadata.get("description") or metadata.get("subtitle") or ""),
        date=normalize_date(metadata["date"]),
        tags=tags,
        content=fm_post.content,
        image=str(metadata.get("image") or ""),
        slug=tag_to_slug(tags[0]),
        url=str(url) if url and str(url) != post_id else None,
        published=bool(metadata.get("published", True)),
        created_at=_as_utc(metadata.get("createdAt"), modified),
        updated_at=_as_utc(metadata.get("updatedAt"), modified),
    )


def post_to_frontmatter(post: Post) -> frontmatter.Post:
    metadata = {
        "id": post.id,
        "title": post.title,
        "description": post.description,
        "date": post.date,
        "tags": list(post.tags),
        "image": post.image or "",
        "published": post.published,
        "createdAt": post.created_at.isoformat(),
        "updatedAt": post.updated_at.isoformat(),
    }
    if post.url:
        metadata["url"] = post.url
    return frontmatter.Post(post.content, **metadata)


def read_post_file(file_path: Path) -> Optional[Post]:
    """Parse one MDX/Markdown file. Unreadable or incomplete files yield None."""
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            fm_post = frontmatter.load(f)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning(f"Could not read post file {file_path}: {exc}")
        return None

    modified = datetime.fromtimestamp(file_path.stat().st_mtime, tz=timezone.utc)
    return post_from_frontmatter(fm_post, file_path.stem, modified)


def read_posts_dir(directory: Path) -> Iterator[Post]:
    """Yield every valid post in a directory."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.info(f"No posts directory at {directory}")
        return
    for file_path in sorted(directory.iterdir()):
        if file_path.suffix in POST_EXTENSIONS and file_path.is_file():
            post = read_post_file(file_path)
            if post:
                yield post


class FilePostRepository(PostRepository):

    def __init__(self, posts_dir: Path, backups_dir: Path):
        self.posts_dir = Path(posts_dir)
        self.backups_dir = Path(backups_dir)

    def _find_file(self, post_id: str) -> Optional[Path]:
        if not is_safe_name(post_id):
            return None
        for extension in POST_EXTENSIONS:
            file_path = self.posts_dir / f"{post_id}{extension}"
            if file_path.is_file():
                return file_path
        return None

    def _write(self, file_path: Path, post: Post) -> None:
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(frontmatter.dumps(post_to_frontmatter(post)))
            f.write("\n")

    def create(self, post: Post) -> Post:
        if self._find_file(post.id) is not None:
            raise ConflictError(f'Post with ID "{post.id}" already exists')
        if not is_safe_name(post.id):
            raise ConflictError(f'Post ID "{post.id}" cannot be used as a file name')
        self.posts_dir.mkdir(parents=True, exist_ok=True)
        self._write(self.posts_dir / f"{post.id}.mdx", post)
        return post

    def get(self, post_id: str) -> Optional[Post]:
        file_path = self._find_file(post_id)
        if file_path is None:
            return None
        return read_post_file(file_path)

    def update(self, post: Post) -> Post:
        file_path = self._find_file(post.id)
        if file_path is None:
            raise NotFoundError(f'Post with ID "{post.id}" not found')
        self._write(file_path, post)
        return post

    def delete(self, post_id: str) -> None:
        file_path = self._find_file(post_id)
        if file_path is None:
            raise NotFoundError(f'Post with ID "{post_id}" not found')

        self.backups_dir.mkdir(parents=True, exist_ok=True)
        timestamp = utcnow().isoformat().replace(":", "-").replace(".", "-").replace("+", "-")
        backup_path = self.backups_dir / f"{post_id}-{timestamp}{file_path.suffix}"
        shutil.copyfile(file_path, backup_path)
        file_path.unlink()
        logger.info(f"Backed up {file_path.name} to {backup_path}")

    def list(self, published: Optional[bool] = None) -> list[Post]:
        return [
            post for post in read_posts_dir(self.posts_dir)
            if published is None or post.published == published
        ]


class FileImageStore(ImageStore):

    def __init__(self, images_dir: Path):
        self.images_dir = Path(images_dir)

    def _path(self, filename: str) -> Optional[Path]:
        if not is_safe_name(filename):
            return None
        return self.images_dir / filename

    def _describe(self, file_path: Path, with_data: bool) -> Image:
        stat = file_path.stat()
        # Only known image suffixes get an image type.
        mime_type = MIME_TYPE_FOR_EXTENSION.get(file_path.suffix.lower(), "application/octet-stream")
        return Image(
            filename=file_path.name,
            original_name=file_path.name,
            mime_type=mime_type,
            size=stat.st_size,
            data=file_path.read_bytes() if with_data else b"",
            uploaded_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def save(self, image: Image) -> Image:
        file_path = self._path(image.filename)
        if file_path is None:
            raise ConflictError(f'Invalid image filename "{image.filename}"')
        if file_path.exists():
            raise ConflictError(f'Image "{image.filename}" already exists')
        self.images_dir.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(image.data)
        return image

    def get(self, filename: str) -> Optional[Image]:
        file_path = self._path(filename)
        if file_path is None or not file_path.is_file():
            return None
        return self._describe(file_path, with_data=True)

    def delete(self, filename: str) -> bool:
        file_path = self._path(filename)
        if file_path is None or not file_path.is_file():
            return False
        file_path.unlink()
        return True

    def list(self) -> list[Image]:
        if not self.images_dir.is_dir():
            return []
        images = [
            self._describe(file_path, with_data=False)
            for file_path in self.images_dir.iterdir()
            if file_path.is_file() and is_safe_name(file_path.name)
        ]
        return sorted(images, key=lambda image: image.uploaded_at, reverse=True)


class FileStorage(Storage):
    """MDX files under <content>/posts, backups under <content>/backups."""

    name = "filesystem"

    def __init__(self, posts_dir: Path, backups_dir: Path, images_dir: Path):
        super().__init__(FilePostRepository(posts_dir, backups_dir), FileImageStore(images_dir))

    def open(self) -> None:
        self.posts.posts_dir.mkdir(parents=True, exist_ok=True)
        self.images.images_dir.mkdir(parents=True, exist_ok=True)

    def ping(self) -> bool:
        return self.posts.posts_dir.is_dir()
