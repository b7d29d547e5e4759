"""
JWT Utilities

Provides JWT token generation and validation for API sessions.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import jwt

from pushdeploy.config.settings import JWTConfig as ConfigJWTConfig

logger = logging.getLogger(__name__)


class JWTConfig:
    """JWT Configuration with security validation"""

    MIN_KEY_LENGTH = 32

    SECRET_KEY = ConfigJWTConfig.SECRET_KEY
    ALGORITHM = ConfigJWTConfig.ALGORITHM
    ACCESS_TOKEN_EXPIRE_MINUTES = ConfigJWTConfig.ACCESS_TOKEN_EXPIRE_MINUTES
    COOKIE_NAME = ConfigJWTConfig.COOKIE_NAME

    # JWT Claims
    USER_ID_CLAIM = "sub"
    USERNAME_CLAIM = "username"
    NAME_CLAIM = "name"
    TOKEN_TYPE_CLAIM = "token_type"

    @classmethod
    def validate_security_settings(cls) -> None:
        """
        Validate JWT settings at startup

        Raises:
            ValueError: If the secret is missing or too short
        """
        if len(cls.SECRET_KEY or "") < cls.MIN_KEY_LENGTH:
            raise ValueError(
                f"JWT secret key must be at least {cls.MIN_KEY_LENGTH} characters, "
                f"set jwt.secret_key or JWT_SECRET_KEY"
            )


class JWTUtils:
    """JWT Utilities for token generation and validation"""

    @staticmethod
    def create_access_token(
            user_id: str,
            username: str,
            name: Optional[str] = None,
            expires_delta: Optional[timedelta] = None
    ) -> str:
        """
        Create a new JWT access token

        Args:
            user_id: User ID
            username: Username
            name: User's display name
            expires_delta: Token expiration time delta

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=JWTConfig.ACCESS_TOKEN_EXPIRE_MINUTES))
        payload = {
            JWTConfig.USER_ID_CLAIM: user_id,
            JWTConfig.USERNAME_CLAIM: username,
            JWTConfig.NAME_CLAIM: name or username,
            JWTConfig.TOKEN_TYPE_CLAIM: "access",
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(payload, JWTConfig.SECRET_KEY, algorithm=JWTConfig.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """
        Decode and validate JWT token

        Raises:
            ValueError: If the token is expired, malformed or not an access token
        """
        try:
            payload = jwt.decode(token, JWTConfig.SECRET_KEY, algorithms=[JWTConfig.ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise ValueError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise ValueError(f"Invalid token: {str(e)}")

        if payload.get(JWTConfig.TOKEN_TYPE_CLAIM) != "access":
            raise ValueError("Token type mismatch")
        return payload

    @staticmethod
    def extract_user_id(token: str) -> Optional[str]:
        """
        Extract user ID from token

        Returns:
            User ID or None if the token does not validate
        """
        try:
            return JWTUtils.decode_token(token).get(JWTConfig.USER_ID_CLAIM)
        except ValueError as e:
            logger.debug(f"Token rejected: {e}")
            return None
