"""Application-level exception types.

Side-channel failures (shared record storage, performance log writes, webhook
delivery) are raised as AppError subclasses so the monitor can log them with
a stable code before discarding them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability."""

    code: str
    message: str
    path: str
    http_status: int
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

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class StorageAppError(AppError):
    """Raised when the shared record or a log file cannot be locked, read or written."""


class MalformedStateError(AppError):
    """Raised when the shared rate limit record does not parse."""


class DeliveryAppError(AppError):
    """Raised when the webhook is unreachable or answers with a non-2xx status."""
