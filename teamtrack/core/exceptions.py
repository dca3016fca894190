"""
Typed application errors.

Every error is an HTTPException carrying the standard
{"code": ..., "message": ...} detail body, so services can raise them
directly and FastAPI renders them without extra handlers.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for errors raised by services and the policy layer."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.code = code or self.default_code
        self.message = message or self.default_message
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message},
            headers=headers,
        )


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "BAD_REQUEST"
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"
    default_message = "Authentication required"

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        super().__init__(message, code, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"
    default_message = "Resource already exists"
