"""
Auth API Router

Registration and login. Login sets the session cookie as well as
returning the bearer token.
"""

from fastapi import APIRouter, Depends, Response

from pushdeploy.config.settings import JWTConfig
from pushdeploy.db.schemas import UserLogin, UserRegister
from pushdeploy.service.auth_service import AuthService
from pushdeploy.utils.auth.dependencies import get_current_user_id
from pushdeploy.utils.model.response_model import BaseResponse

auth_router = APIRouter(prefix="/auth", tags=["auth"])

auth_service = AuthService()


@auth_router.post(
    "/register",
    summary="Register an account",
    operation_id="register",
    status_code=201,
)
async def register(data: UserRegister):
    return await auth_service.register(data)


@auth_router.post(
    "/login",
    summary="Log in",
    operation_id="login"
)
async def login(data: UserLogin, response: Response):
    """Issue an access token, also stored in the session cookie"""
    token = await auth_service.login(data)
    response.set_cookie(
        JWTConfig.COOKIE_NAME,
        token.access_token,
        max_age=JWTConfig.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )
    return BaseResponse.success(data=token, message="Login successful")


@auth_router.post(
    "/logout",
    summary="Log out",
    operation_id="logout"
)
async def logout(response: Response):
    response.delete_cookie(JWTConfig.COOKIE_NAME)
    return BaseResponse.success(message="Logged out")


@auth_router.get(
    "/me",
    summary="Current user",
    operation_id="get_me"
)
async def get_me(user_id: str = Depends(get_current_user_id)):
    return await auth_service.get_me(user_id)
