"""Shared fixtures for the test suite."""

from pathlib import Path

from blogcms.config import Settings
from blogcms.services.auth import hash_password

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct horse battery"
ADMIN_PASSWORD_HASH = hash_password(ADMIN_PASSWORD, rounds=4)


def make_settings(content_dir, **overrides) -> Settings:
    values = {
        "environment": "test",
        "storage_backend": "memory",
        "content_dir": Path(content_dir),
        "jwt_secret": "test-secret",
        "admin_username": ADMIN_USERNAME,
        "admin_password_hash": ADMIN_PASSWORD_HASH,
        "site_url": "https://blog.example.com",
        "site_name": "Example Blog",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


def post_data(**overrides) -> dict:
    data = {
        "title": "Getting Started with React",
        "description": "A first look at components",
        "date": "2024-01-15",
        "tags": ["React", "JavaScript"],
        "content": "# Hello\n\nSome **markdown** content.",
        "image": "",
        "published": True,
    }
    data.update(overrides)
    return data
