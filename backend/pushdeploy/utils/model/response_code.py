"""
Response Status Codes

Defines standard HTTP response status codes for the API.
"""


class ResponseCode:
    """Standard response status codes"""

    # Success codes (2xx)
    SUCCESS = 200
    CREATED = 201
    ACCEPTED = 202

    # Client error codes (4xx)
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    PAYLOAD_TOO_LARGE = 413
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    # Server error codes (5xx)
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504

    _MESSAGES = {
        SUCCESS: "Success",
        CREATED: "Created successfully",
        ACCEPTED: "Request accepted",
        BAD_REQUEST: "Bad request",
        UNAUTHORIZED: "Unauthorized",
        FORBIDDEN: "Forbidden",
        NOT_FOUND: "Resource not found",
        CONFLICT: "Resource conflict",
        PAYLOAD_TOO_LARGE: "Payload too large",
        UNPROCESSABLE_ENTITY: "Validation failed",
        TOO_MANY_REQUESTS: "Too many requests",
        INTERNAL_SERVER_ERROR: "Internal server error",
        BAD_GATEWAY: "Bad gateway",
        SERVICE_UNAVAILABLE: "Service unavailable",
        GATEWAY_TIMEOUT: "Gateway timeout",
    }

    @classmethod
    def get_message(cls, code: int) -> str:
        """Get default message for status code"""
        return cls._MESSAGES.get(code, "Unknown error")
