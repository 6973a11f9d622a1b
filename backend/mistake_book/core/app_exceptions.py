"""Application-specific exceptions for consistent error handling."""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


def not_found(message: str, details: dict[str, Any] | None = None) -> AppError:
    """Referenced record does not exist."""
    return AppError(status.HTTP_404_NOT_FOUND, "MISTAKE_NOT_FOUND", message, details)


def storage_failure(message: str) -> AppError:
    """The persistence layer errored; the underlying message is surfaced as-is."""
    return AppError(status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_FAILURE", message)
