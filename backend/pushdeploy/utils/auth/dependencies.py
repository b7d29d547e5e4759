"""
Authentication Dependencies

FastAPI dependencies for JWT token extraction and validation. The token is
read from the ``Authorization: Bearer`` header or from the session cookie.
"""

import logging
from typing import Optional

from fastapi import Header, Request, WebSocket

from pushdeploy.utils.auth.jwt_utils import JWTConfig, JWTUtils
from pushdeploy.utils.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


def _token_from(authorization: Optional[str], cookies) -> Optional[str]:
    if authorization:
        if authorization.startswith("Bearer "):
            return authorization[7:]
        return authorization
    return cookies.get(JWTConfig.COOKIE_NAME)


async def get_current_user_id(
    request: Request,
    authorization: Optional[str] = Header(None, description="Bearer token")
) -> str:
    """
    Extract user ID from the JWT

    Raises:
        AuthenticationError: If the token is missing, invalid or expired
    """
    token = _token_from(authorization, request.cookies)
    if not token:
        raise AuthenticationError("Authentication required")

    user_id = JWTUtils.extract_user_id(token)
    if not user_id:
        logger.warning(f"Token validation failed on {request.url.path}")
        raise AuthenticationError("Invalid or expired token")
    return user_id


async def get_optional_user_id(
    request: Request,
    authorization: Optional[str] = Header(None, description="Bearer token")
) -> Optional[str]:
    """Extract user ID from the JWT, None if absent or invalid"""
    token = _token_from(authorization, request.cookies)
    if not token:
        return None
    return JWTUtils.extract_user_id(token)


def get_websocket_user_id(websocket: WebSocket) -> Optional[str]:
    """
    Resolve the user of a WebSocket handshake

    Browsers cannot set headers on a WebSocket, so the cookie and a
    ``token`` query parameter are accepted as well.
    """
    token = _token_from(websocket.headers.get("authorization"), websocket.cookies)
    if not token:
        token = websocket.query_params.get("token")
    if not token:
        return None
    return JWTUtils.extract_user_id(token)
