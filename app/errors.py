"""
Application error taxonomy.

Every error raised on purpose by the matching code derives from ``AppError``
and carries the HTTP status code it should be rendered with.  ``app.main``
registers a handler that turns them into ``{"error": message}`` responses.
"""
from __future__ import annotations

from typing import Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Malformed or missing profile fields."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    """Unknown user or match id."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(AppError):
    """A match status change that the transition table does not allow."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str, terminal: bool = False) -> None:
        message = f"Cannot move match from '{current}' to '{requested}'"
        if terminal:
            message += f"; '{current}' is final"
        super().__init__(message)
        self.current = current
        self.requested = requested
        self.terminal = terminal


class DatabaseError(AppError):
    """A store read or write failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ExternalServiceError(AppError):
    """The text-generation collaborator failed or returned garbage."""

    status_code = status.HTTP_502_BAD_GATEWAY
