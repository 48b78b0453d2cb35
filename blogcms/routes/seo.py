"""
SEO routes.
Handles sitemap.xml, feed.xml and robots.txt built from published posts.
"""

from datetime import datetime
from email.utils import format_datetime
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from blogcms.config import Settings
from blogcms.deps import get_app_settings, get_post_repository
from blogcms.entities import Post
from blogcms.services import posts as posts_service
from blogcms.storage.base import PostRepository

router = APIRouter(tags=["seo"])

FEED_SIZE = 20


def post_link(settings: Settings, post: Post) -> str:
    """Canonical reader URL: /{category}/{id}, category being the first tag's slug."""
    return f"{settings.site_url}/{post.slug}/{post.id}"


def published_posts(repo: PostRepository) -> list[Post]:
    return sorted(repo.list(published=True), key=posts_service.sort_key, reverse=True)


@router.get("/sitemap.xml")
async def sitemap(
    repo: PostRepository = Depends(get_post_repository),
    settings: Settings = Depends(get_app_settings),
):
    """
    Dynamic XML sitemap of the home page, tag pages and every published post.
    """
    posts = published_posts(repo)
    today = datetime.now().strftime("%Y-%m-%d")

    urls = [f"""
    <url>
        <loc>{escape(settings.site_url)}/</loc>
        <lastmod>{today}</lastmod>
        <changefreq>daily</changefreq>
        <priority>1.0</priority>
    </url>"""]

    for tag in posts_service.list_tags(repo):
        urls.append(f"""
    <url>
        <loc>{escape(settings.site_url)}/tags/{escape(tag['slug'])}</loc>
        <changefreq>weekly</changefreq>
        <priority>0.5</priority>
    </url>""")

    for post in posts:
        urls.append(f"""
    <url>
        <loc>{escape(post_link(settings, post))}</loc>
        <lastmod>{post.updated_at.strftime("%Y-%m-%d")}</lastmod>
        <changefreq>monthly</changefreq>
        <priority>0.7</priority>
    </url>""")

    sitemap_xml = f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{"".join(urls)}
</urlset>"""

    response = Response(content=sitemap_xml.strip(), media_type="application/xml")
    response.headers["Cache-Control"] = "public, max-age=3600"
    return response


@router.get("/feed.xml")
async def feed(
    repo: PostRepository = Depends(get_post_repository),
    settings: Settings = Depends(get_app_settings),
):
    """RSS 2.0 feed of the most recent published posts."""
    posts = published_posts(repo)[:FEED_SIZE]

    items = []
    for post in posts:
        link = escape(post_link(settings, post))
        categories = "".join(f"\n        <category>{escape(tag)}</category>" for tag in post.tags)
        items.append(f"""
    <item>
        <title>{escape(post.title)}</title>
        <link>{link}</link>
        <guid isPermaLink="true">{link}</guid>
        <description>{escape(post.description)}</description>
        <pubDate>{format_datetime(posts_service.sort_key(post))}</pubDate>{categories}
    </item>""")

    feed_xml = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
    <title>{escape(settings.site_name)}</title>
    <link>{escape(settings.site_url)}/</link>
    <description>{escape(settings.site_name)} posts</description>{"".join(items)}
</channel>
</rss>"""

    response = Response(content=feed_xml.strip(), media_type="application/rss+xml")
    response.headers["Cache-Control"] = "public, max-age=3600"
    return response


@router.get("/robots.txt")
async def robots(settings: Settings = Depends(get_app_settings)):
    """
    Robots.txt file for search engine crawlers.
    """
    robots_txt = f"""User-agent: *
Allow: /

# Sitemap location
Sitemap: {settings.site_url}/sitemap.xml

# Disallow admin areas
Disallow: /admin/
Disallow: /api/admin/
"""

    response = Response(content=robots_txt.strip(), media_type="text/plain")
    response.headers["Cache-Control"] = "public, max-age=86400"
    return response
