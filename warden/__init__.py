"""Warden.

Authorization layer resolving, caching and enforcing repository access
levels from GitHub, with in-memory sessions and OAuth state.
"""
from .version import (
    __author__,
    __author_email__,
    __description__,
    __title__,
    __version__,
)

__all__ = (
    "__author__",
    "__author_email__",
    "__description__",
    "__title__",
    "__version__",
)
