"""URL-safe identifiers for post titles and tags."""

import re

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def slugify(text: str) -> str:
    """Lowercase-kebab transform of a title or tag.

    >>> slugify("Getting Started with React!")
    'getting-started-with-react'
    """
    if not text:
        return ""
    slug = _INVALID_CHARS.sub("", text.lower())
    slug = _WHITESPACE.sub("-", slug)
    slug = _DASHES.sub("-", slug)
    return slug.strip("-")


def tag_to_slug(tag: str) -> str:
    return slugify(tag)
