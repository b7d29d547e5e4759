"""
Utilities Module

Common utilities, exceptions, and response models.
"""

from .exceptions import (
    BusinessException,
    ValidationException,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ConflictError,
    ResourceExhaustedError,
    GitTransportError,
    AuthenticationError,
    AccessDeniedError,
    register_exception_handlers,
)
from .model import (
    ResponseCode,
    BaseResponse,
)

__all__ = [
    # Exceptions
    "BusinessException",
    "ValidationException",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "ResourceExhaustedError",
    "GitTransportError",
    "AuthenticationError",
    "AccessDeniedError",
    "register_exception_handlers",
    # Response models
    "ResponseCode",
    "BaseResponse",
]
