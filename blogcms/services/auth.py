"""
Admin authentication.
A single configured admin account: bcrypt password hash, HS256 JWT in an httpOnly cookie.
"""

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request, Response

from blogcms.config import Settings
from blogcms.deps import get_app_settings
from blogcms.entities import AuthUser
from blogcms.errors import UnauthorizedError

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "auth-token"
JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 12


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash. A malformed hash never matches."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Configured admin password hash is not a valid bcrypt hash")
        return False


def authenticate_user(username: str, password: str, settings: Settings) -> Optional[AuthUser]:
    """Return the admin user for the exact configured credentials, else None."""
    if not settings.admin_username or not settings.admin_password_hash:
        logger.warning("Login attempted but ADMIN_USERNAME/ADMIN_PASSWORD_HASH are not configured")
        return None
    if not username or not password:
        return None

    # Both checks always run.
    username_ok = hmac.compare_digest(username.encode("utf-8"), settings.admin_username.encode("utf-8"))
    password_ok = verify_password(password, settings.admin_password_hash)
    if not (username_ok and password_ok):
        return None

    return AuthUser(username=settings.admin_username, is_admin=True)


def create_token(user: AuthUser, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "username": user.username,
        "isAdmin": user.is_admin,
        "iat": now,
        "exp": now + timedelta(seconds=settings.token_ttl_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str, settings: Settings) -> Optional[AuthUser]:
    """Decode a token, returning None when it is expired, tampered with or malformed."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired auth token")
        return None
    except jwt.InvalidTokenError as exc:
        logger.warning(f"Token verification failed: {exc}")
        return None

    username = payload.get("username")
    if not isinstance(username, str) or not username:
        return None
    return AuthUser(username=username, is_admin=bool(payload.get("isAdmin", False)))


def set_auth_cookie(response: Response, user: AuthUser, settings: Settings) -> None:
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=create_token(user, settings),
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.token_ttl_seconds,
        path="/",
    )


def clear_auth_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

def get_current_user(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Optional[AuthUser]:
    """User from the auth cookie, or None."""
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        return None
    return verify_token(token, settings)


def require_admin(user: Optional[AuthUser] = Depends(get_current_user)) -> AuthUser:
    if user is None or not user.is_admin:
        raise UnauthorizedError()
    return user
