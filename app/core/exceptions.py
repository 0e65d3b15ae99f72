"""Custom exceptions."""
from typing import List, Optional
from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Resource not found exception."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail or "Resource not found")


class UnauthorizedError(HTTPException):
    """Unauthorized exception."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail or "Not authorized to access this route",
            headers={"WWW-Authenticate": "Bearer"},
        )


class BadRequestError(HTTPException):
    """Request is well-formed but not allowed in the current state."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail or "Bad request")


class ValidationError(HTTPException):
    """Validation exception carrying one message per offending field."""

    def __init__(self, detail: Optional[str] = None, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail or "Validation failed")


class ConflictError(HTTPException):
    """Conflict exception."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail or "Resource conflict")
