"""
Warden HTTP Handlers.
"""
from .auth import AuthHandler
from .middleware import error_middleware
from .permissions import PermissionHandler

__all__ = (
    "AuthHandler",
    "PermissionHandler",
    "error_middleware",
)
