"""
MongoDB storage using pymongo.
Posts and images live in the `posts` and `images` collections; image bytes are base64 strings.
"""

import base64
import logging
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure, PyMongoError

from blogcms.entities import Image, Post, PostQuery, PostsPage, utcnow
from blogcms.errors import ConflictError, NotFoundError, StorageUnavailableError
from blogcms.services.posts import sort_key
from blogcms.services.slugs import tag_to_slug
from blogcms.storage.base import ImageStore, PostRepository, Storage

logger = logging.getLogger(__name__)

CLIENT_OPTIONS = {
    "maxPoolSize": 10,
    "serverSelectionTimeoutMS": 5000,
    "socketTimeoutMS": 45000,
}


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map driver failures onto application errors."""
    try:
        yield
    except ConnectionFailure as exc:
        logger.error(f"MongoDB connection failure: {exc}")
        raise StorageUnavailableError() from exc


def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def post_to_document(post: Post) -> dict[str, Any]:
    return {
        "id": post.id,
        "title": post.title,
        "description": post.description,
        "content": post.content,
        "date": post.date,
        # Naive UTC datetime; queries sort on it instead of the raw date text.
        "dateSort": sort_key(post),
        "tags": list(post.tags),
        "tagSlugs": [tag_to_slug(tag) for tag in post.tags],
        "image": post.image or "",
        "slug": post.slug,
        "url": post.url,
        "published": post.published,
        "createdAt": post.created_at,
        "updatedAt": post.updated_at,
    }


def document_to_post(doc: dict[str, Any]) -> Post:
    return Post(
        id=doc["id"],
        title=doc.get("title", ""),
        description=doc.get("description", ""),
        date=doc.get("date", ""),
        tags=list(doc.get("tags") or []),
        content=doc.get("content", ""),
        image=doc.get("image") or "",
        slug=doc.get("slug", ""),
        url=doc.get("url"),
        published=doc.get("published", True),
        created_at=_aware(doc.get("createdAt")),
        updated_at=_aware(doc.get("updatedAt")),
    )


def build_filter(query: PostQuery) -> dict[str, Any]:
    conditions: list[dict[str, Any]] = []
    if query.published is not None:
        conditions.append({"published": query.published})
    if query.tag and query.tag.strip():
        tag = query.tag.strip()
        conditions.append({"$or": [
            {"tags": {"$regex": f"^{re.escape(tag)}$", "$options": "i"}},
            {"tagSlugs": tag.lower()},
        ]})
    if query.search and query.search.strip():
        pattern = {"$regex": re.escape(query.search.strip()), "$options": "i"}
        conditions.append({"$or": [
            {"title": pattern},
            {"description": pattern},
            {"tags": pattern},
        ]})
    if not conditions:
        return {}
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


class MongoPostRepository(PostRepository):

    def __init__(self, collection):
        self.collection = collection

    def create(self, post: Post) -> Post:
        with translate_errors():
            try:
                self.collection.insert_one(post_to_document(post))
            except DuplicateKeyError as exc:
                raise ConflictError(f'Post with ID "{post.id}" already exists') from exc
        return post

    def get(self, post_id: str) -> Optional[Post]:
        with translate_errors():
            doc = self.collection.find_one({"id": post_id})
        return document_to_post(doc) if doc else None

    def update(self, post: Post) -> Post:
        with translate_errors():
            doc = self.collection.find_one_and_replace(
                {"id": post.id},
                post_to_document(post),
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(f'Post with ID "{post.id}" not found')
        return document_to_post(doc)

    def delete(self, post_id: str) -> None:
        with translate_errors():
            result = self.collection.delete_one({"id": post_id})
        if result.deleted_count == 0:
            raise NotFoundError(f'Post with ID "{post_id}" not found')

    def query(self, query: PostQuery) -> PostsPage:
        mongo_filter = build_filter(query)
        skip = (query.page - 1) * query.limit
        with translate_errors():
            total = self.collection.count_documents(mongo_filter)
            docs = list(
                self.collection.find(mongo_filter)
                .sort("dateSort", DESCENDING)
                .skip(skip)
                .limit(query.limit)
            )
        return PostsPage(
            posts=[document_to_post(doc) for doc in docs],
            total=total,
            page=query.page,
            limit=query.limit,
            has_more=query.page * query.limit < total,
        )

    def list(self, published: Optional[bool] = None) -> list[Post]:
        mongo_filter = {} if published is None else {"published": published}
        with translate_errors():
            docs = self.collection.find(mongo_filter).sort("dateSort", DESCENDING)
            return [document_to_post(doc) for doc in docs]


class MongoImageStore(ImageStore):

    def __init__(self, collection):
        self.collection = collection

    def save(self, image: Image) -> Image:
        doc = {
            "filename": image.filename,
            "originalName": image.original_name,
            "mimeType": image.mime_type,
            "size": image.size,
            "data": base64.b64encode(image.data).decode("ascii"),
            "uploadedAt": image.uploaded_at,
        }
        with translate_errors():
            try:
                self.collection.insert_one(doc)
            except DuplicateKeyError as exc:
                raise ConflictError(f'Image "{image.filename}" already exists') from exc
        return image

    def get(self, filename: str) -> Optional[Image]:
        with translate_errors():
            doc = self.collection.find_one({"filename": filename})
        if doc is None:
            return None
        return Image(
            filename=doc["filename"],
            original_name=doc.get("originalName", doc["filename"]),
            mime_type=doc.get("mimeType", "application/octet-stream"),
            size=doc.get("size", 0),
            data=base64.b64decode(doc.get("data", "")),
            uploaded_at=_aware(doc.get("uploadedAt")),
        )

    def delete(self, filename: str) -> bool:
        with translate_errors():
            result = self.collection.delete_one({"filename": filename})
        return result.deleted_count > 0

    def list(self) -> list[Image]:
        with translate_errors():
            docs = self.collection.find({}, {"data": 0}).sort("uploadedAt", DESCENDING)
            return [
                Image(
                    filename=doc["filename"],
                    original_name=doc.get("originalName", doc["filename"]),
                    mime_type=doc.get("mimeType", "application/octet-stream"),
                    size=doc.get("size", 0),
                    uploaded_at=_aware(doc.get("uploadedAt")),
                )
                for doc in docs
            ]


class MongoStorage(Storage):
    """Storage backed by a MongoDB database."""

    name = "mongodb"

    def __init__(self, uri: Optional[str] = None, db_name: str = "blog", client=None):
        if client is None:
            if not uri:
                raise ValueError("MONGODB_URI must be set to use the mongodb storage backend")
            client = MongoClient(uri, tz_aware=True, **CLIENT_OPTIONS)
        self.client = client
        self.db = client[db_name]
        super().__init__(
            MongoPostRepository(self.db["posts"]),
            MongoImageStore(self.db["images"]),
        )

    def open(self) -> None:
        """Ensure indexes exist."""
        try:
            posts = self.db["posts"]
            posts.create_index([("id", ASCENDING)], unique=True)
            posts.create_index([("dateSort", DESCENDING)])
            posts.create_index([("tags", ASCENDING)])
            posts.create_index([("published", ASCENDING)])

            images = self.db["images"]
            images.create_index([("filename", ASCENDING)], unique=True)
            images.create_index([("uploadedAt", DESCENDING)])
            logger.info("MongoDB indexes initialized")
        except OperationFailure as exc:
            logger.warning(f"Could not initialize MongoDB indexes: {exc}")

    def close(self) -> None:
        self.client.close()

    def ping(self) -> bool:
        try:
            self.client.admin.command("ping")
            return True
        except PyMongoError as exc:
            logger.error(f"MongoDB ping failed: {exc}")
            return False
