"""
Auth Service

Account registration and login. Login issues a JWT carried either as a
bearer token or in the session cookie.
"""

import logging

from sqlalchemy.exc import IntegrityError

from pushdeploy.config.logging_config import log_print
from pushdeploy.db.repository import UserRepository
from pushdeploy.db.schemas import UserRegister, UserLogin, UserResponse, TokenResponse
from pushdeploy.utils.auth.jwt_utils import JWTUtils
from pushdeploy.utils.auth.password import hash_password, verify_password
from pushdeploy.utils.exceptions import AuthenticationError, ConflictError, NotFoundError
from pushdeploy.utils.model.response_model import BaseResponse

logger = logging.getLogger(__name__)


class AuthService:
    """User accounts"""

    def __init__(self):
        self.user_repo = UserRepository()

    async def register(self, data: UserRegister):
        if await self.user_repo.get_by_username(data.username):
            raise ConflictError(f"Username '{data.username}' is already taken")

        password_hash = await hash_password(data.password)
        try:
            user = await self.user_repo.create_user(data.username, password_hash, name=data.name)
        except IntegrityError:
            raise ConflictError(f"Username '{data.username}' is already taken")

        logger.info(f"Registered user {user.username}")
        return BaseResponse.created(data=UserResponse.model_validate(user), message="Registration successful")

    async def login(self, data: UserLogin) -> TokenResponse:
        """
        Check a username/password pair and issue an access token

        Unknown users still cost one bcrypt check.

        Raises:
            AuthenticationError: On any mismatch, with one uniform message
        """
        user = await self.user_repo.get_by_username(data.username)
        if not await verify_password(data.password, user.password_hash if user else None):
            logger.info(f"Failed login for '{data.username}'")
            raise AuthenticationError("Invalid username or password")

        token = JWTUtils.create_access_token(user.id, user.username, user.name)
        return TokenResponse(access_token=token, user=UserResponse.model_validate(user))

    @log_print
    async def get_me(self, user_id: str):
        user = await self.user_repo.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", resource_type="user")
        return BaseResponse.success(data=UserResponse.model_validate(user))
