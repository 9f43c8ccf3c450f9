"""
Auth utilities for the CaptionFlow API.

Validates session JWTs issued by the auth provider and extracts the user id.
Falls back to the X-User-Id header when ALLOW_DEV_USER_HEADER is enabled
(local development and tests).
"""
from fastapi import Depends, Header, Request
from typing import Optional, Tuple
import hmac
import jwt
import logging

from captionflow.core.config import Settings
from captionflow.core.database import Database, get_db
from captionflow.core.errors import PermissionError, UnauthorizedError
from captionflow.core.logging import user_id_ctx_var
from captionflow.features.users.service import get_or_create_user
from captionflow.models.user import User

logger = logging.getLogger("captionflow")


def get_settings(request: Request) -> Settings:
    """FastAPI dependency: the Settings the application was built with."""
    return request.app.state.settings


def verify_session_jwt(token: str, settings: Settings) -> Tuple[str, Optional[str]]:
    """
    Verify a session JWT and extract (user_id, email).

    Args:
        token: JWT from Authorization header (Bearer {token})
        settings: Application settings holding AUTH_JWT_SECRET

    Returns:
        (user_id, email) from the 'sub' and 'email' claims

    Raises:
        UnauthorizedError: Invalid, expired or unverifiable token
    """
    if not settings.AUTH_JWT_SECRET:
        logger.warning("AUTH_JWT_SECRET not configured, rejecting bearer token")
        raise UnauthorizedError("Unauthorized")

    options = {"verify_signature": True, "verify_exp": True, "verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token")

    return user_id, payload.get("email")


async def get_current_identity(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Dev/test user ID"),
    settings: Settings = Depends(get_settings),
) -> Tuple[str, Optional[str]]:
    """
    Resolve (user_id, email) for the request.

    Priority:
    1. Bearer JWT from Authorization header
    2. X-User-Id header (only when ALLOW_DEV_USER_HEADER is set)
    3. Raise 401 Unauthorized
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        identity = verify_session_jwt(auth_header[7:], settings)
    elif x_user_id and settings.ALLOW_DEV_USER_HEADER:
        identity = (x_user_id, None)
    else:
        raise UnauthorizedError("Unauthorized")

    # request.state feeds request.complete; the context var tags service logs
    request.state.user_id = identity[0]
    user_id_ctx_var.set(identity[0])
    return identity


async def get_current_user_id(identity: Tuple[str, Optional[str]] = Depends(get_current_identity)) -> str:
    return identity[0]


def get_current_user(
    identity: Tuple[str, Optional[str]] = Depends(get_current_identity),
    db: Database = Depends(get_db),
) -> User:
    """Load the authenticated user's record, creating it on first sight."""
    user_id, email = identity
    return get_or_create_user(db, user_id, email)


def require_admin_key(
    x_admin_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """FastAPI dependency for admin-only listings. Unset ADMIN_KEY locks them."""
    if not settings.ADMIN_KEY or not x_admin_key or not hmac.compare_digest(x_admin_key, settings.ADMIN_KEY):
        logger.warning("admin.denied", extra={"has_key": bool(x_admin_key)})
        raise PermissionError("Invalid or missing X-Admin-Key header")
