"""
Security headers middleware.

Every response gets:
- X-Content-Type-Options, X-Frame-Options, Referrer-Policy
- Strict-Transport-Security (production only)
- Cross-Origin-Opener-Policy and Cross-Origin-Resource-Policy
- a Content-Security-Policy for a JSON and image API
- a Permissions-Policy denying browser features the API never needs
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add hardened security headers to all responses.

    Responses without a Cache-Control header are marked no-store, so only
    routes that opt in (public listings, images, feeds) are cacheable.
    """

    PERMISSIONS_POLICY = ", ".join([
        "accelerometer=()",
        "autoplay=()",
        "camera=()",
        "display-capture=()",
        "geolocation=()",
        "gyroscope=()",
        "magnetometer=()",
        "microphone=()",
        "payment=()",
        "usb=()",
        "xr-spatial-tracking=()",
    ])

    CSP_DIRECTIVES = {
        "default-src": "'none'",
        "img-src": "'self'",
        "frame-ancestors": "'none'",
        "base-uri": "'none'",
        "form-action": "'self'",
    }

    def __init__(self, app, hsts: bool = True, csp_overrides: dict | None = None):
        """Initialize with optional CSP directive overrides.

        Args:
            app: The ASGI application
            hsts: Send Strict-Transport-Security (disable for plain-HTTP development)
            csp_overrides: Optional dict to override default CSP directives
        """
        super().__init__(app)
        self.hsts = hsts
        self.csp_directives = {**self.CSP_DIRECTIVES}
        if csp_overrides:
            self.csp_directives.update(csp_overrides)

        self.csp = "; ".join(
            f"{key} {value}".strip() if value else key
            for key, value in self.csp_directives.items()
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        # === Core Security Headers ===
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # === Transport Security ===
        if self.hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # === Cross-Origin Policies ===
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"

        # === Content and Permissions Policy ===
        response.headers["Content-Security-Policy"] = self.csp
        response.headers["Permissions-Policy"] = self.PERMISSIONS_POLICY

        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        return response
