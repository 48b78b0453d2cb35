"""
Admin authentication routes.
JSON login issuing a short-lived JWT in an httpOnly cookie.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from blogcms.config import Settings
from blogcms.deps import get_app_settings
from blogcms.entities import AuthUser
from blogcms.errors import UnauthorizedError
from blogcms.schemas import LoginRequest
from blogcms.services.auth import (
    authenticate_user,
    clear_auth_cookie,
    require_admin,
    set_auth_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["auth"])

LOGIN_RATE_LIMIT = "5/minute"

# Rate limiter for login attempts
limiter = Limiter(key_func=get_remote_address)


@router.post("/login")
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    credentials: LoginRequest,
    settings: Settings = Depends(get_app_settings),
):
    """Check the admin credentials and set the auth cookie."""
    user = authenticate_user(credentials.username, credentials.password, settings)
    if user is None:
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Failed admin login for '{credentials.username}' from {client}")
        raise UnauthorizedError("Invalid credentials")

    logger.info(f"Admin '{user.username}' logged in")
    response = JSONResponse(content={"success": True, "user": user.to_dict()})
    set_auth_cookie(response, user, settings)
    return response


@router.post("/logout")
async def logout(settings: Settings = Depends(get_app_settings)):
    response = JSONResponse(content={"success": True})
    clear_auth_cookie(response, settings)
    return response


@router.get("/me")
async def me(user: AuthUser = Depends(require_admin)):
    return {"user": user.to_dict()}
