"""
Unified Response Model

Provides standardized API response format for all endpoints.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field
from .response_code import ResponseCode


class BaseResponse(BaseModel):
    """Base response model for all API endpoints"""

    code: int = Field(200, description="API status code")
    message: str = Field("success", description="API status message")
    data: Optional[Any] = Field(None, description="API data")

    model_config = {
        "arbitrary_types_allowed": True,
        "json_schema_extra": {
            "example": {
                "code": 200,
                "message": "success",
                "data": None
            }
        }
    }

    @classmethod
    def success(cls, data: Optional[Any] = None, message: str = None):
        """
        Create success response

        Args:
            data: Response data
            message: Custom success message

        Returns:
            BaseResponse with success status
        """
        if message is None:
            message = ResponseCode.get_message(ResponseCode.SUCCESS)
        return cls(code=ResponseCode.SUCCESS, message=message, data=data)

    @classmethod
    def created(cls, data: Optional[Any] = None, message: str = None):
        """Create response for resource creation"""
        if message is None:
            message = ResponseCode.get_message(ResponseCode.CREATED)
        return cls(code=ResponseCode.CREATED, message=message, data=data)

    @classmethod
    def error(cls, data: Optional[Any] = None, message: str = None, code: int = None):
        """
        Create error response

        Args:
            data: Response data
            message: Custom error message
            code: Error status code

        Returns:
            BaseResponse with error status
        """
        if code is None:
            code = ResponseCode.INTERNAL_SERVER_ERROR
        if message is None:
            message = ResponseCode.get_message(code)
        return cls(code=code, message=message, data=data)
