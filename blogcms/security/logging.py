"""Request logging middleware with basic threat flagging."""

import logging
import re
import time
from typing import Pattern
from urllib.parse import unquote

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger("blogcms.requests")


THREAT_PATTERNS: dict[str, Pattern] = {
    "xss": re.compile(
        r"(<script)|"
        r"(%3cscript)|"
        r"(javascript\s*:)|"
        r"(on(error|load|click|mouse|focus|blur)\s*=)|"
        r"(<img[^>]+onerror)|"
        r"(<svg[^>]+onload)",
        re.IGNORECASE,
    ),
    "path_traversal": re.compile(
        r"(\.\./)|"
        r"(\.\.\\)|"
        r"(%2e%2e%2f)|"
        r"(%2e%2e/)|"
        r"(\.%2e/)|"
        r"(%2e\./)|(etc/passwd)",
        re.IGNORECASE,
    ),
    "probe": re.compile(
        r"(/wp-admin)|"
        r"(/wp-login\.php)|"
        r"(/xmlrpc\.php)|"
        r"(/phpmyadmin)|"
        r"(/\.env)|"
        r"(/\.git)",
        re.IGNORECASE,
    ),
}


def detect_threat(path: str, query: str) -> tuple[str | None, str | None]:
    """Return (threat type, matched text) for the first pattern hit, else (None, None)."""
    target = unquote(f"{path}?{query}" if query else path)
    for threat_type, pattern in THREAT_PATTERNS.items():
        match = pattern.search(target)
        if match:
            return threat_type, match.group(0)
    return None, None


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request; suspicious requests and errors at WARNING."""

    def __init__(self, app, log_all: bool = True):
        super().__init__(app)
        self.log_all = log_all

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        path = request.url.path
        query = request.url.query
        threat_type, threat_details = detect_threat(path, query)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        line = (
            f"{request.method} {path} {response.status_code} "
            f"{duration_ms:.1f}ms ip={get_client_ip(request)}"
        )

        if threat_type:
            logger.warning(f"{line} threat={threat_type} match={threat_details[:100]!r}")
        elif response.status_code == 429 or response.status_code >= 500:
            logger.warning(line)
        elif self.log_all:
            logger.info(line)

        return response
