"""
Posts service for the blog.
Validation, sanitization, listing helpers and CRUD operations over a PostRepository.
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

import markdown

from blogcms.entities import Post, PostQuery, PostsPage, utcnow
from blogcms.errors import ConflictError, NotFoundError, ValidationError
from blogcms.services.slugs import slugify, tag_to_slug

if TYPE_CHECKING:
    from blogcms.storage.base import PostRepository

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 50

EDITABLE_FIELDS = ("title", "description", "date", "tags", "image", "content", "published", "url")


def parse_date(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Parse a date value from frontmatter or a request to a naive UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def normalize_date(value: Union[str, date, datetime, None]) -> str:
    """Render a frontmatter date as an ISO string, leaving unparseable text untouched."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def render_markdown(content: str) -> str:
    """Convert markdown to HTML."""
    md = markdown.Markdown(extensions=['extra', 'codehilite', 'toc'])
    return md.convert(content)


def validate_post_data(data: dict[str, Any]) -> list[str]:
    """Return a list of validation errors. Empty when the data is valid."""
    errors = []

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("Title is required")
    elif not slugify(title):
        errors.append("Title must contain letters or numbers")

    description = data.get("description")
    if not isinstance(description, str) or not description.strip():
        errors.append("Description is required")

    post_date = data.get("date")
    if not post_date:
        errors.append("Date is required")
    elif parse_date(post_date) is None:
        errors.append("Invalid date format")

    tags = data.get("tags")
    if not isinstance(tags, (list, tuple)) or not clean_tags(tags):
        errors.append("At least one tag is required")

    return errors


def clean_tags(tags: Iterable[Any]) -> list[str]:
    """Strip tags and drop blanks, keeping order."""
    return [str(tag).strip() for tag in tags if tag is not None and str(tag).strip()]


# Blocklist patterns. Not a parser-based sanitizer.
# Tag patterns never scan past the next "<" or ">".
_SCRIPT_TAG = re.compile(r"<(/?)script\b[^<>]*>?", re.IGNORECASE)
_JAVASCRIPT_URI = re.compile(r"javascript\s*:", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[a-zA-Z][^<>]*>")
_EVENT_HANDLER = re.compile(
    r"""(?:\s|(?<=["'/]))on[a-z]+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""",
    re.IGNORECASE,
)

MAX_SANITIZE_PASSES = 10


def _strip_script_spans(content: str) -> str:
    """Drop each <script> opener through its next closer, or to the end when unclosed."""
    kept = []
    position = 0
    inside = False
    for match in _SCRIPT_TAG.finditer(content):
        closing = bool(match.group(1))
        if inside:
            if closing:
                inside = False
                position = match.end()
            continue
        kept.append(content[position:match.start()])
        position = match.end()
        inside = not closing
    if not inside:
        kept.append(content[position:])
    return "".join(kept)


def _strip_event_handlers(match: re.Match) -> str:
    return _EVENT_HANDLER.sub("", match.group(0))


def _sanitize_once(content: str) -> str:
    content = _strip_script_spans(content)
    content = _SCRIPT_TAG.sub("", content)
    content = _JAVASCRIPT_URI.sub("", content)
    return _HTML_TAG.sub(_strip_event_handlers, content)


def sanitize_content(content: str) -> str:
    """Remove script blocks, javascript: URIs and inline event handlers.

    Removal repeats until the text is stable, so fragments cannot reassemble
    into a new match. Text that is still changing after MAX_SANITIZE_PASSES
    is rejected.
    """
    for _ in range(MAX_SANITIZE_PASSES):
        cleaned = _sanitize_once(content)
        if cleaned == content:
            return cleaned
        content = cleaned
    raise ValidationError("Content contains disallowed markup")


def generate_preview(content: str, max_length: int = 200) -> str:
    """Plain-text excerpt of a markdown body."""
    text = re.sub(r"^---[\s\S]*?---", "", content)
    text = re.sub(r"```[\s\S]*?```", "", text)
    text = re.sub(r"`[^`]*`", "", text)
    text = re.sub(r"!\[.*?\]\(.*?\)", "", text)
    text = re.sub(r"\[([^\]]*)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"[#*_~`]", "", text)
    text = re.sub(r"\s+", " ", text).strip()

    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


# =============================================================================
# LISTING HELPERS
# =============================================================================

def matches_tag(post: Post, tag: str) -> bool:
    """Case-insensitive match against any tag, or against a tag's slug."""
    wanted = tag.strip().lower()
    if not wanted:
        return True
    return any(
        post_tag.lower() == wanted or tag_to_slug(post_tag) == wanted
        for post_tag in post.tags
    )


def matches_search(post: Post, text: str) -> bool:
    needle = text.strip().lower()
    if not needle:
        return True
    return (
        needle in post.title.lower()
        or needle in post.description.lower()
        or any(needle in tag.lower() for tag in post.tags)
    )


def sort_key(post: Post) -> datetime:
    return parse_date(post.date) or datetime.min


def paginate(posts: list[Post], page: int, limit: int) -> PostsPage:
    """Slice an already filtered and sorted list."""
    total = len(posts)
    start = (page - 1) * limit
    return PostsPage(
        posts=posts[start:start + limit],
        total=total,
        page=page,
        limit=limit,
        has_more=page * limit < total,
    )


def apply_query(posts: Iterable[Post], query: PostQuery) -> PostsPage:
    """Filter, sort newest first and paginate posts in memory."""
    selected = [
        post for post in posts
        if (query.published is None or post.published == query.published)
        and (not query.tag or matches_tag(post, query.tag))
        and (not query.search or matches_search(post, query.search))
    ]
    selected.sort(key=sort_key, reverse=True)
    return paginate(selected, query.page, query.limit)


def check_page_params(page: int, limit: int) -> None:
    if page < 1 or limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError("Invalid page or limit parameters")


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_post(repo: "PostRepository", post_id: str) -> Post:
    """Get a post by ID or raise NotFoundError."""
    post = repo.get(post_id)
    if post is None:
        raise NotFoundError(f'Post with ID "{post_id}" not found')
    return post


def resolve_post(repo: "PostRepository", slug: str, published_only: bool = True) -> Post:
    """Resolve a post by id, falling back to its legacy url alias."""
    post = repo.get(slug)
    if post is None:
        post = next((p for p in repo.list() if p.url == slug), None)
    if post is None or (published_only and not post.published):
        raise NotFoundError("Post not found")
    return post


def get_post_in_category(repo: "PostRepository", tag_slug: str, post_id: str) -> Post:
    """Get a published post whose first tag maps to the given category slug."""
    post = resolve_post(repo, post_id)
    if post.slug != tag_slug.lower():
        raise NotFoundError("Post not found")
    return post


def list_posts(repo: "PostRepository", query: PostQuery) -> PostsPage:
    check_page_params(query.page, query.limit)
    return repo.query(query)


def list_tags(repo: "PostRepository") -> list[dict[str, Any]]:
    """Unique tags across published posts, sorted by name."""
    counts: dict[str, dict[str, Any]] = {}
    for post in repo.list(published=True):
        for tag in post.tags:
            entry = counts.setdefault(tag, {"name": tag, "slug": tag_to_slug(tag), "count": 0})
            entry["count"] += 1
    return [counts[name] for name in sorted(counts, key=str.lower)]


# =============================================================================
# WRITE OPERATIONS
# =============================================================================

def create_post(repo: "PostRepository", data: dict[str, Any]) -> Post:
    """Validate, sanitize and store a new post."""
    errors = validate_post_data(data)
    if errors:
        raise ValidationError("Validation failed", errors)

    post_id = slugify(data["title"])
    if repo.get(post_id) is not None:
        raise ConflictError(f'Post with ID "{post_id}" already exists')

    tags = clean_tags(data["tags"])
    now = utcnow()
    post = Post(
        id=post_id,
        title=data["title"].strip(),
        description=data["description"].strip(),
        date=str(data["date"]).strip(),
        tags=tags,
        content=sanitize_content(data.get("content") or ""),
        image=data.get("image") or "",
        slug=tag_to_slug(tags[0]),
        url=data.get("url") or None,
        published=bool(data.get("published", True)),
        created_at=now,
        updated_at=now,
    )
    created = repo.create(post)
    logger.info(f"Created post {created.id}")
    return created


def update_post(repo: "PostRepository", post_id: str, changes: dict[str, Any]) -> Post:
    """Merge partial changes into an existing post. The id never changes."""
    post = get_post(repo, post_id)

    for name in EDITABLE_FIELDS:
        if name in changes and changes[name] is not None:
            setattr(post, name, changes[name])

    errors = validate_post_data({
        "title": post.title,
        "description": post.description,
        "date": post.date,
        "tags": post.tags,
    })
    if errors:
        raise ValidationError("Validation failed", errors)

    if changes.get("content") is not None:
        post.content = sanitize_content(post.content)
    post.title = post.title.strip()
    post.description = post.description.strip()
    post.date = str(post.date).strip()
    post.tags = clean_tags(post.tags)
    post.slug = tag_to_slug(post.tags[0])
    post.updated_at = utcnow()

    updated = repo.update(post)
    logger.info(f"Updated post {updated.id}")
    return updated


def delete_post(repo: "PostRepository", post_id: str) -> None:
    repo.delete(post_id)
    logger.info(f"Deleted post {post_id}")
