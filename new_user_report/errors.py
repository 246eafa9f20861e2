"""Exception hierarchy shared by the report toolkit."""
from __future__ import annotations

from typing import Optional


class ReportError(RuntimeError):
    """Base exception for every operator-facing failure."""


class AuthError(ReportError):
    """Raised when login, consent or silent token acquisition fails."""

    def __init__(self, message: str, needs_interactive: bool = False) -> None:
        super().__init__(message)
        self.needs_interactive = needs_interactive


class PreconditionError(ReportError):
    """Raised when a Graph call is attempted without an active session."""


class TransportError(ReportError):
    """Raised when the Graph endpoint cannot be reached at all."""


class ApiError(ReportError):
    """Raised when Microsoft Graph answers with a non-success status."""

    def __init__(self, status_code: int, reason: str, body: Optional[str] = None) -> None:
        super().__init__(f"Graph API call failed: {status_code} {reason}".rstrip())
        self.status_code = status_code
        self.reason = reason
        self.body = body


class ValidationError(ReportError):
    """Raised when required operator input is missing or malformed."""


__all__ = [
    "ApiError",
    "AuthError",
    "PreconditionError",
    "ReportError",
    "TransportError",
    "ValidationError",
]
