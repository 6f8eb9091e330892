#%% Custom Exceptions
"""
Custom exception classes for the CareEase client.

This module defines specific exception types for the failure classes the
client can run into: configuration problems, API errors mapped from HTTP
status codes, and client-side guards.
"""

from typing import Any, Dict, List, Optional


class CareEaseError(Exception):
    """Base exception class for all client errors."""
    pass


class ConfigurationError(CareEaseError):
    """Raised when configuration is invalid or missing."""
    pass


class AlarmValidationError(CareEaseError):
    """Raised when an alarm is rejected before any request is issued."""
    pass


class ApiError(CareEaseError):
    """Raised when a request to the CareEase API fails.

    The message is user-facing: it is either the backend's own ``message``
    or a generic text for the status code.
    """

    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(self.message)


class NetworkError(ApiError):
    """Raised when the API could not be reached at all."""
    default_message = "Network error. Please check your connection."


class AuthenticationError(ApiError):
    """Raised on 401 responses."""
    default_message = "Authentication required"


class PermissionDeniedError(ApiError):
    """Raised on 403 responses."""
    default_message = "Access denied"


class AccountBannedError(PermissionDeniedError):
    """Raised on 403 responses for banned accounts."""

    def __init__(self, message: Optional[str] = None, *, ban_reason: Optional[str] = None, **kwargs):
        self.ban_reason = ban_reason
        super().__init__(message or f"Account banned: {ban_reason or 'Contact support'}", **kwargs)


class NotFoundError(ApiError):
    """Raised on 404 responses."""
    default_message = "Resource not found"


class RequestValidationError(ApiError):
    """Raised on 422 responses. ``errors`` holds the per-field messages."""

    default_message = "Validation error"

    def __init__(self, message: Optional[str] = None, *, errors: Optional[List[str]] = None, **kwargs):
        self.errors = errors or []
        super().__init__(message, **kwargs)


class RateLimitError(ApiError):
    """Raised on 429 responses."""
    default_message = "Too many requests. Please slow down."


class ServerError(ApiError):
    """Raised on 5xx responses."""
    default_message = "Server error. Please try again later."
