"""
Business Exception Classes - Base Exception Definitions

Contains all business logic related exception types. ``code`` is the HTTP
status the global handler answers with.
"""

from typing import Optional, Any, Dict


class BusinessException(Exception):
    """
    Business Logic Exception

    Used to handle exceptions in business logic.
    """

    def __init__(self, message: str, code: int = 400, data: Any = None, headers: Optional[Dict[str, str]] = None):
        self.message = message
        self.code = code
        self.data = data
        self.headers = headers
        super().__init__(self.message)


class ValidationException(BusinessException):
    """
    Data Validation Exception

    Invalid env key, bad ref, a path that is not a directory, ...
    """

    def __init__(self, message: str = "Validation failed", errors: Any = None, code: int = 400):
        self.errors = errors
        super().__init__(message=message, code=code, data={"errors": errors} if errors else None)


class NotFoundError(BusinessException):
    """
    Resource Not Found Exception

    Used when a requested resource is not found.
    """

    def __init__(self, message: str = "Resource not found", resource_type: Optional[str] = None, resource_id: Optional[str] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message=message, code=404)


class UnauthorizedError(BusinessException):
    """
    Unauthorized Access Exception

    The message is the same whatever part of the credentials was wrong.
    """

    def __init__(self, message: str = "Invalid credentials", headers: Optional[Dict[str, str]] = None):
        super().__init__(message=message, code=401, headers=headers)


class ForbiddenError(BusinessException):
    """
    Forbidden Access Exception

    Used when the user doesn't have permission to access the resource.
    """

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message=message, code=403)


class ConflictError(BusinessException):
    """Resource already exists (duplicate project, duplicate user)"""

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message=message, code=409)


class ResourceExhaustedError(BusinessException):
    """A bounded queue or pool is full"""

    def __init__(self, message: str = "Too many requests"):
        super().__init__(message=message, code=429)


class PayloadTooLargeError(BusinessException):
    """Request body over the configured limit"""

    def __init__(self, message: str = "Request body too large"):
        super().__init__(message=message, code=413)


class GitTransportError(BusinessException):
    """A git service process failed; the push was rejected"""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message=message, code=500)


class BuildFailure(Exception):
    """
    Raised inside a build; recorded on the Build row and its log, never
    returned to an HTTP caller.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ReleaseTimeoutError(Exception):
    """The new instance never passed its readiness probe"""

    def __init__(self, message: str, attempts: int = 0):
        self.message = message
        self.attempts = attempts
        super().__init__(message)


# Names used across the codebase
AuthenticationError = UnauthorizedError
AccessDeniedError = ForbiddenError
