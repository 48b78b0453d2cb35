"""
Blog CMS application factory.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from blogcms.config import Settings, configure_logging, get_settings
from blogcms.errors import register_error_handlers
from blogcms.routes import admin, auth, blog, health, images, seo
from blogcms.security import RequestLogMiddleware, SecurityHeadersMiddleware
from blogcms.storage import build_storage

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage = build_storage(settings)
        storage.open()
        app.state.storage = storage
        logger.info(f"Storage backend '{storage.name}' ready ({settings.environment})")
        try:
            yield
        finally:
            storage.close()
            logger.info(f"Storage backend '{storage.name}' closed")

    app = FastAPI(
        title=settings.site_name,
        description="Content management API for a Markdown blog",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.limiter = auth.limiter

    register_error_handlers(app)

    # Security middleware
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(RequestLogMiddleware)

    # Include routes
    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(blog.router)
    app.include_router(images.router)
    app.include_router(seo.router)
    app.include_router(health.router)

    return app


app = create_app()
