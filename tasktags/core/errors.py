"""
Typed errors raised by the service layer.

Each error carries the HTTP status the boundary maps it to; services never
build HTTP responses themselves.
"""
from fastapi import status


class AppError(Exception):
    """Base class for operational errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected internal server error occurred."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.message!r})"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"


class EmptyNameError(ValidationError):
    default_message = "Tag name cannot be empty."


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid username or password"


class PermissionDeniedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action."


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found."


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists."


class InUseError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource is still in use."
