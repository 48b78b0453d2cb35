"""
SQLAlchemy models for the sql storage backend.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, LargeBinary, String, Text

from blogcms.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PostRecord(Base):
    """Blog post row. Tags are kept as an ordered JSON list."""
    __tablename__ = "posts"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(200), unique=True, nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    date = Column(String(64), nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    image = Column(Text, nullable=False, default="")
    slug = Column(String(200), nullable=False, default="")
    url = Column(String(500))
    published = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index('idx_posts_published', 'published'),
        Index('idx_posts_date', 'date'),
    )

    def __repr__(self):
        return f"<PostRecord {self.id}>"


class ImageRecord(Base):
    """Uploaded image stored as a BLOB."""
    __tablename__ = "images"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String(255), unique=True, nullable=False, index=True)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(64), nullable=False)
    size = Column(Integer, nullable=False)
    data = Column(LargeBinary, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    def __repr__(self):
        return f"<ImageRecord {self.filename}>"
