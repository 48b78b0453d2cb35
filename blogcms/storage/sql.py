"""
SQL storage using SQLAlchemy (SQLite by default).
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from blogcms.db.database import build_engine, build_session_factory, init_db
from blogcms.db.models import ImageRecord, PostRecord
from blogcms.entities import Image, Post, utcnow
from blogcms.errors import ConflictError, NotFoundError, StorageUnavailableError
from blogcms.storage.base import ImageStore, PostRepository, Storage

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_post(record: PostRecord) -> Post:
    return Post(
        id=record.id,
        title=record.title,
        description=record.description or "",
        date=record.date,
        tags=list(record.tags or []),
        content=record.content or "",
        image=record.image or "",
        slug=record.slug or "",
        url=record.url,
        published=bool(record.published),
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


def _apply(record: PostRecord, post: Post) -> None:
    record.title = post.title
    record.description = post.description
    record.content = post.content
    record.date = post.date
    record.tags = list(post.tags)
    record.image = post.image or ""
    record.slug = post.slug
    record.url = post.url
    record.published = post.published
    record.created_at = post.created_at
    record.updated_at = post.updated_at


class SessionScope:
    """Hands out sessions that commit on success and roll back on error."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def __call__(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except OperationalError as exc:
            db.rollback()
            logger.error(f"Database unavailable: {exc}")
            raise StorageUnavailableError() from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class SqlPostRepository(PostRepository):

    def __init__(self, session_scope: SessionScope):
        self.session_scope = session_scope

    def create(self, post: Post) -> Post:
        try:
            with self.session_scope() as db:
                record = PostRecord(id=post.id)
                _apply(record, post)
                db.add(record)
        except IntegrityError as exc:
            raise ConflictError(f'Post with ID "{post.id}" already exists') from exc
        return post

    def get(self, post_id: str) -> Optional[Post]:
        with self.session_scope() as db:
            record = db.query(PostRecord).filter(PostRecord.id == post_id).first()
            return _to_post(record) if record else None

    def update(self, post: Post) -> Post:
        with self.session_scope() as db:
            record = db.query(PostRecord).filter(PostRecord.id == post.id).first()
            if record is None:
                raise NotFoundError(f'Post with ID "{post.id}" not found')
            _apply(record, post)
        return post

    def delete(self, post_id: str) -> None:
        with self.session_scope() as db:
            deleted = db.query(PostRecord).filter(PostRecord.id == post_id).delete()
            if not deleted:
                raise NotFoundError(f'Post with ID "{post_id}" not found')

    def list(self, published: Optional[bool] = None) -> list[Post]:
        with self.session_scope() as db:
            query = db.query(PostRecord)
            if published is not None:
                query = query.filter(PostRecord.published == published)
            return [_to_post(record) for record in query.order_by(PostRecord.date.desc()).all()]


class SqlImageStore(ImageStore):

    def __init__(self, session_scope: SessionScope):
        self.session_scope = session_scope

    def save(self, image: Image) -> Image:
        try:
            with self.session_scope() as db:
                db.add(ImageRecord(
                    filename=image.filename,
                    original_name=image.original_name,
                    mime_type=image.mime_type,
                    size=image.size,
                    data=image.data,
                    uploaded_at=image.uploaded_at,
                ))
        except IntegrityError as exc:
            raise ConflictError(f'Image "{image.filename}" already exists') from exc
        return image

    def get(self, filename: str) -> Optional[Image]:
        with self.session_scope() as db:
            record = db.query(ImageRecord).filter(ImageRecord.filename == filename).first()
            if record is None:
                return None
            return Image(
                filename=record.filename,
                original_name=record.original_name,
                mime_type=record.mime_type,
                size=record.size,
                data=record.data,
                uploaded_at=_aware(record.uploaded_at),
            )

    def delete(self, filename: str) -> bool:
        with self.session_scope() as db:
            return db.query(ImageRecord).filter(ImageRecord.filename == filename).delete() > 0

    def list(self) -> list[Image]:
        with self.session_scope() as db:
            rows = (
                db.query(
                    ImageRecord.filename,
                    ImageRecord.original_name,
                    ImageRecord.mime_type,
                    ImageRecord.size,
                    ImageRecord.uploaded_at,
                )
                .order_by(ImageRecord.uploaded_at.desc())
                .all()
            )
            return [
                Image(
                    filename=row.filename,
                    original_name=row.original_name,
                    mime_type=row.mime_type,
                    size=row.size,
                    uploaded_at=_aware(row.uploaded_at),
                )
                for row in rows
            ]


class SqlStorage(Storage):
    """Storage backed by a SQLAlchemy engine."""

    name = "sql"

    def __init__(self, database_url: str):
        self.engine = build_engine(database_url)
        session_scope = SessionScope(build_session_factory(self.engine))
        super().__init__(SqlPostRepository(session_scope), SqlImageStore(session_scope))

    def open(self) -> None:
        init_db(self.engine)
        logger.info(f"Database tables ready on {self.engine.url.render_as_string(hide_password=True)}")

    def close(self) -> None:
        self.engine.dispose()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.error(f"Database ping failed: {exc}")
            return False
