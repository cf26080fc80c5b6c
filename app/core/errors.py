"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    field: str
    limit: int
    count: int
    max_bytes: int
    actual_bytes: int
    content_type: str
    http_status: int
    response_summary: dict[str, Any]
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    status_code = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class PayloadTooLargeAppError(ValidationAppError):
    """Raised when an uploaded file exceeds its size limit."""

    status_code = 413


class AuthenticationAppError(AppError):
    """Raised when admin authentication fails."""

    status_code = 401


class RateLimitAppError(AppError):
    """Raised when a visitor has used up today's generation quota."""

    status_code = 429


class RelayAppError(AppError):
    """Raised when the remote image-generation webhook fails."""

    status_code = 502


class ConfigurationAppError(AppError):
    """Raised when required server configuration is missing."""

    status_code = 500
