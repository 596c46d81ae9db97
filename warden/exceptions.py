"""Warden exceptions.

Every error raised on the request path derives from ``WardenError`` and
carries the HTTP status it maps to, so the web layer can render it without
knowing the concrete class.
"""
from typing import Any, Optional


class WardenError(Exception):
    """Base error for the authorization layer."""
    status: int = 500
    error: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        self.message = message or self.error
        self.details: dict[str, Any] = kwargs
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "success": False,
            "error": self.error,
            "message": self.message,
        }
        payload.update(self.details)
        return payload


class Unauthenticated(WardenError):
    """Missing, invalid or expired session token."""
    status = 401
    error = "Unauthorized"


class CSRFViolation(WardenError):
    """Missing, expired or already consumed OAuth state."""
    status = 400
    error = "Invalid state"


class InvalidRequest(WardenError):
    """Malformed input (missing parameters, unknown action)."""
    status = 400
    error = "Bad request"


class Forbidden(WardenError):
    """Authenticated, but the resolved level is below the required one."""
    status = 403
    error = "Forbidden"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        level: str = "none",
        role: str = "Denied",
        required: Optional[str] = None,
        **kwargs: Any
    ):
        self.level = level
        self.role = role
        self.required = required
        super().__init__(
            message,
            permission=level,
            role=role,
            required=required,
            **kwargs
        )


class UpstreamFailure(WardenError):
    """Identity provider failed: network error, non-2xx response or timeout."""
    status = 502
    error = "Authentication failed"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any
    ):
        self.status_code = status_code
        super().__init__(message, **kwargs)


class ConfigurationError(WardenError):
    """Required provider credentials are absent."""
    status = 500
    error = "OAuth not configured"
