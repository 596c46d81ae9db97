"""Identity providers consulted by the authorization layer."""
from .abstract import AbstractIdentityProvider
from .github import GitHubProvider

__all__ = (
    "AbstractIdentityProvider",
    "GitHubProvider",
)
