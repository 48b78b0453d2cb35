"""
Runtime configuration for the blog.
Values come from environment variables (a local .env file is loaded first).
"""

import logging
import os
import secrets
import warnings
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

STORAGE_BACKENDS = ("filesystem", "memory", "mongodb", "sql")

BASE_DIR = Path(__file__).parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    environment: str = "development"
    storage_backend: str = "filesystem"
    content_dir: Path = BASE_DIR / "content"
    images_dir: Optional[Path] = None
    seed_content: bool = False

    mongodb_uri: Optional[str] = None
    mongodb_db: str = "blog"
    database_url: str = f"sqlite:///{BASE_DIR / 'data' / 'blog.db'}"

    jwt_secret: str = field(default_factory=lambda: secrets.token_hex(32))
    admin_username: Optional[str] = None
    admin_password_hash: Optional[str] = None
    token_ttl_seconds: int = 10 * 60

    max_image_bytes: int = 5 * 1024 * 1024
    site_url: str = "http://localhost:8000"
    site_name: str = "Blog"
    log_level: str = "INFO"

    def __post_init__(self):
        self.content_dir = Path(self.content_dir)
        if self.images_dir is None:
            self.images_dir = self.content_dir / "images"
        self.images_dir = Path(self.images_dir)
        self.site_url = self.site_url.rstrip("/")
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unknown storage backend '{self.storage_backend}', "
                f"expected one of {', '.join(STORAGE_BACKENDS)}"
            )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def posts_dir(self) -> Path:
        return self.content_dir / "posts"

    @property
    def backups_dir(self) -> Path:
        return self.content_dir / "backups"

    @classmethod
    def from_env(cls) -> "Settings":
        environment = os.getenv("BLOG_ENV", "development")
        is_production = environment == "production"

        jwt_secret = os.getenv("JWT_SECRET") or os.getenv("NEXTAUTH_SECRET")
        if not jwt_secret:
            if is_production:
                raise RuntimeError("JWT_SECRET must be set in production environment")
            warnings.warn("JWT_SECRET not set - using random key (sessions won't persist across restarts)")
            jwt_secret = secrets.token_hex(32)

        content_dir = Path(os.getenv("BLOG_CONTENT_DIR", str(BASE_DIR / "content")))
        images_dir = os.getenv("BLOG_IMAGES_DIR")

        return cls(
            environment=environment,
            storage_backend=os.getenv("BLOG_STORAGE", "filesystem").strip().lower(),
            content_dir=content_dir,
            images_dir=Path(images_dir) if images_dir else None,
            seed_content=_env_bool("BLOG_SEED_CONTENT", False),
            mongodb_uri=os.getenv("MONGODB_URI") or None,
            mongodb_db=os.getenv("MONGODB_DB", "blog"),
            database_url=os.getenv("BLOG_DATABASE_URL", cls.database_url),
            jwt_secret=jwt_secret,
            admin_username=os.getenv("ADMIN_USERNAME") or None,
            admin_password_hash=os.getenv("ADMIN_PASSWORD_HASH") or None,
            site_url=os.getenv("SITE_URL", "http://localhost:8000"),
            site_name=os.getenv("SITE_NAME", "Blog"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
