"""
Global Exception Handlers

Unified handling of all API exceptions to ensure consistent error response format.
"""

import logging
import os

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from pushdeploy.utils.model.response_model import BaseResponse
from pushdeploy.utils.model.response_code import ResponseCode
from pushdeploy.utils.exceptions.base_exceptions import BusinessException

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request parameter validation errors

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        Unified format error response
    """
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    messages = []
    details = []
    for error in exc.errors():
        # Prefer the validator's own message
        ctx = error.get("ctx")
        if isinstance(ctx, dict) and "error" in ctx:
            messages.append(str(ctx["error"]))
        else:
            messages.append(error["msg"])
        details.append({
            "loc": list(error["loc"]),
            "msg": error["msg"],
            "type": error["type"],
        })

    response = BaseResponse.error(
        code=ResponseCode.UNPROCESSABLE_ENTITY,
        message="; ".join(messages),
        data={"details": details},
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=response.model_dump())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handle HTTP exceptions raised by FastAPI/Starlette (404 routes, 405, ...)

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        Unified format error response
    """
    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    response = BaseResponse.error(code=exc.status_code, message=str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(),
        headers=getattr(exc, "headers", None),
    )


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """
    Handle business logic exceptions

    The HTTP status is the exception's own code.

    Args:
        request: Request object
        exc: Business exception

    Returns:
        Unified format error response
    """
    http_status = exc.code if 400 <= exc.code < 600 else status.HTTP_400_BAD_REQUEST
    if http_status >= 500:
        logger.error(f"Business error on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"Business error on {request.url.path}: {exc.message}")

    response = BaseResponse.error(code=exc.code, message=exc.message, data=exc.data)
    return JSONResponse(status_code=http_status, content=response.model_dump(), headers=exc.headers)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all uncaught exceptions

    Args:
        request: Request object
        exc: Exception

    Returns:
        Unified format error response
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)

    # Return detailed error in development, generic error in production
    if os.getenv("ENVIRONMENT", "production") == "development":
        message = f"Internal server error: {str(exc)}"
        data = {
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    else:
        message = "Internal server error, please try again later"
        data = None

    response = BaseResponse.error(message=message, data=data, code=ResponseCode.INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=response.model_dump())


def register_exception_handlers(app):
    """
    Register all exception handlers

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
