"""Warden configuration, loaded through navconfig."""
from dataclasses import dataclass, field
from typing import Optional

from navconfig import config

from .exceptions import ConfigurationError


## GitHub OAuth application
GITHUB_CLIENT_ID = config.get("GITHUB_CLIENT_ID")
GITHUB_CLIENT_SECRET = config.get("GITHUB_CLIENT_SECRET")
OAUTH_REDIRECT_URI = config.get(
    "OAUTH_REDIRECT_URI",
    fallback="http://localhost:8080/api/auth/callback"
)
OAUTH_SCOPES = [
    scope.strip()
    for scope in config.get(
        "OAUTH_SCOPES", fallback="read:user,user:email,repo"
    ).split(",")
    if scope.strip()
]
GITHUB_API_URL = config.get("GITHUB_API_URL", fallback="https://api.github.com")
GITHUB_OAUTH_URL = config.get("GITHUB_OAUTH_URL", fallback="https://github.com")
GITHUB_USER_AGENT = config.get("GITHUB_USER_AGENT", fallback="Warden")

## Sessions
SESSION_TTL = config.getint("SESSION_TTL", fallback=24 * 60 * 60)
SESSION_TOKEN_LENGTH = config.getint("SESSION_TOKEN_LENGTH", fallback=32)
SESSION_CAPACITY_HINT = config.getint("SESSION_CAPACITY_HINT", fallback=10000)
SESSION_COOKIE_NAME = config.get("SESSION_COOKIE_NAME", fallback="auth-token")

## CSRF state
AUTH_STATE_TTL = config.getint("AUTH_STATE_TTL", fallback=10 * 60)
AUTH_STATE_MAX_SIZE = config.getint("AUTH_STATE_MAX_SIZE", fallback=10000)

## Permission cache
PERMISSION_CACHE_TTL = config.getint("PERMISSION_CACHE_TTL", fallback=5 * 60)
PERMISSION_FAILURE_TTL = config.getint(
    "PERMISSION_FAILURE_TTL",
    fallback=PERMISSION_CACHE_TTL
)
PERMISSION_CACHE_MAX_SIZE = config.getint(
    "PERMISSION_CACHE_MAX_SIZE",
    fallback=10000
)

## Background tasks and upstream calls
SWEEP_INTERVAL = config.getint("SWEEP_INTERVAL", fallback=60)
PROVIDER_TIMEOUT = config.getint("PROVIDER_TIMEOUT", fallback=10)

## Web server
WARDEN_HOST = config.get("WARDEN_HOST", fallback="0.0.0.0")
WARDEN_PORT = config.getint("WARDEN_PORT", fallback=8080)


@dataclass
class OAuthConfig:
    """Client credentials used during the authorization handshake.

    Attributes:
        client_id: OAuth application client id.
        client_secret: OAuth application client secret.
        redirect_uri: Callback URI registered with the provider.
        scopes: Scopes requested on login.
    """
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None
    scopes: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "OAuthConfig":
        """Build the config from the navconfig-loaded settings."""
        return cls(
            client_id=GITHUB_CLIENT_ID,
            client_secret=GITHUB_CLIENT_SECRET,
            redirect_uri=OAUTH_REDIRECT_URI,
            scopes=list(OAUTH_SCOPES),
        )

    def require(self, secret: bool = False) -> None:
        """Fail fast when the handshake cannot be performed.

        Args:
            secret: Also require the client secret (code exchange).

        Raises:
            ConfigurationError: if a required credential is absent.
        """
        missing = []
        if not self.client_id:
            missing.append("GITHUB_CLIENT_ID")
        if secret and not self.client_secret:
            missing.append("GITHUB_CLIENT_SECRET")
        if not self.redirect_uri:
            missing.append("OAUTH_REDIRECT_URI")
        if missing:
            raise ConfigurationError(
                f"GitHub OAuth is not properly configured, missing: {', '.join(missing)}"
            )
