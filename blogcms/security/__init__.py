"""Security middleware for the blog API."""

from blogcms.security.headers import SecurityHeadersMiddleware
from blogcms.security.logging import RequestLogMiddleware, detect_threat

__all__ = [
    "SecurityHeadersMiddleware",
    "RequestLogMiddleware",
    "detect_threat",
]
