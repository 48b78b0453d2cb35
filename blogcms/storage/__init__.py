"""Storage backends selected by configuration."""

from blogcms.config import Settings
from blogcms.storage.base import ImageStore, PostRepository, Storage


def build_storage(settings: Settings) -> Storage:
    """Create (but do not open) the storage backend named in settings."""
    backend = settings.storage_backend

    if backend == "memory":
        from blogcms.storage.memory import MemoryStorage
        return MemoryStorage(seed_dir=settings.posts_dir if settings.seed_content else None)

    if backend == "filesystem":
        from blogcms.storage.filesystem import FileStorage
        return FileStorage(settings.posts_dir, settings.backups_dir, settings.images_dir)

    if backend == "mongodb":
        from blogcms.storage.mongo import MongoStorage
        return MongoStorage(settings.mongodb_uri, settings.mongodb_db)

    if backend == "sql":
        from blogcms.storage.sql import SqlStorage
        return SqlStorage(settings.database_url)

    raise ValueError(f"Unknown storage backend '{backend}'")


__all__ = ["build_storage", "ImageStore", "PostRepository", "Storage"]
