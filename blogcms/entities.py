"""
Domain records shared by every storage backend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Post:
    id: str
    title: str
    description: str
    date: str
    tags: list[str]
    content: str = ""
    image: str = ""
    slug: str = ""
    url: Optional[str] = None
    published: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def reading_time(self) -> int:
        """Reading time in minutes (~200 words/min)."""
        if not self.content:
            return 1
        return max(1, round(len(self.content.split()) / 200))

    def to_dict(self, include_content: bool = True) -> dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "tags": list(self.tags),
            "image": self.image,
            "slug": self.slug,
            "published": self.published,
            "readingTime": self.reading_time,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if self.url:
            data["url"] = self.url
        if include_content:
            data["content"] = self.content
        return data


@dataclass
class Image:
    filename: str
    original_name: str
    mime_type: str
    size: int
    data: bytes = field(repr=False, default=b"")
    uploaded_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "originalName": self.original_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "uploadedAt": self.uploaded_at.isoformat(),
            "url": f"/api/images/{self.filename}",
        }


@dataclass
class AuthUser:
    username: str
    is_admin: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"username": self.username, "isAdmin": self.is_admin}


@dataclass
class PostQuery:
    page: int = 1
    limit: int = 12
    tag: Optional[str] = None
    search: Optional[str] = None
    published: Optional[bool] = True


@dataclass
class PostsPage:
    posts: list[Post]
    total: int
    page: int
    limit: int
    has_more: bool

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        return {
            "posts": [post.to_dict(include_content=include_content) for post in self.posts],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "hasMore": self.has_more,
        }
