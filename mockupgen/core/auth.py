"""
Auth utilities.

Validates the hosted auth provider's HS256 JWTs and extracts user_id.
Falls back to the X-User-Id header when AUTH_HEADER_FALLBACK is on (dev, tests).
"""
from fastapi import Header, Request
from typing import Optional
import jwt
import logging

from mockupgen.core.config import settings
from mockupgen.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)


def verify_jwt(token: str) -> Optional[str]:
    """
    Verify a JWT and extract user_id.

    Args:
        token: JWT from Authorization header (Bearer {token})

    Returns:
        user_id from the token's 'sub' claim, or None when no secret is configured

    Raises:
        UnauthorizedError: Invalid or expired token
    """
    if not settings.AUTH_JWT_SECRET:
        logger.debug("No AUTH_JWT_SECRET configured, skipping JWT validation")
        return None

    options = {"verify_signature": True, "verify_exp": True}
    if not settings.AUTH_JWT_AUDIENCE:
        options["verify_aud"] = False

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
        raise UnauthorizedError("Token has no subject")
    return user_id


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Dev/test user ID"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. JWT from Authorization header
    2. X-User-Id header (if AUTH_HEADER_FALLBACK)
    3. Raise 401 Unauthorized
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        user_id = verify_jwt(auth_header[7:])
        if user_id:
            request.state.user_id = user_id
            return user_id

    if x_user_id and settings.AUTH_HEADER_FALLBACK:
        request.state.user_id = x_user_id
        return x_user_id

    raise UnauthorizedError("Missing Authorization (Bearer JWT) or X-User-Id header")
