"""Database package for the sql storage backend."""

from blogcms.db.database import Base, build_engine, build_session_factory, init_db
from blogcms.db.models import ImageRecord, PostRecord

__all__ = ["Base", "build_engine", "build_session_factory", "init_db", "ImageRecord", "PostRecord"]
